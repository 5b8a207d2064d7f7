# question_bank/math_nodes.py

from typing import Annotated, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field


# ==============================================================================
# 公式树节点 (Math Node)
# 解析器自底向上构建这些节点，构建完成后不可变。
# ==============================================================================
class BaseNode(BaseModel):
    model_config = ConfigDict(frozen=True)

    def plain_text(self) -> str:
        """结构性节点不携带文本，只有 Run 返回自身文本。"""
        return ""


class Run(BaseNode):
    type: Literal['run'] = 'run'
    text: str = ""

    def __init__(self, text: str = "", **data):
        super().__init__(text=text, **data)

    def plain_text(self) -> str:
        return self.text


class Fraction(BaseNode):
    type: Literal['fraction'] = 'fraction'
    numerator: List['MathNode'] = Field(default_factory=list)
    denominator: List['MathNode'] = Field(default_factory=list)


class Radical(BaseNode):
    type: Literal['radical'] = 'radical'
    content: List['MathNode'] = Field(default_factory=list)
    degree: Optional[List['MathNode']] = None


class SuperScript(BaseNode):
    type: Literal['superscript'] = 'superscript'
    base: List['MathNode'] = Field(default_factory=list)
    script: List['MathNode'] = Field(default_factory=list)


class SubScript(BaseNode):
    type: Literal['subscript'] = 'subscript'
    base: List['MathNode'] = Field(default_factory=list)
    script: List['MathNode'] = Field(default_factory=list)


class RoundBrackets(BaseNode):
    type: Literal['round_brackets'] = 'round_brackets'
    children: List['MathNode'] = Field(default_factory=list)


class SquareBrackets(BaseNode):
    type: Literal['square_brackets'] = 'square_brackets'
    children: List['MathNode'] = Field(default_factory=list)


MathNode = Annotated[
    Union[Run, Fraction, Radical, SuperScript, SubScript, RoundBrackets, SquareBrackets],
    Field(discriminator='type')
]

for _node_cls in (Fraction, Radical, SuperScript, SubScript, RoundBrackets, SquareBrackets):
    _node_cls.model_rebuild()


def flatten_text(nodes: List[MathNode]) -> str:
    """Concatenates the literal text of a node sequence; composite nodes contribute nothing."""
    return "".join(node.plain_text() for node in nodes)
