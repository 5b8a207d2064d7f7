# question_bank/rendering.py

from typing import Any, Dict, Optional

from lxml import etree

from .omml_renderer import latex_to_omml
from .preview import PreviewResult, render_preview


class OmmlRenderer:
    """Tree based: markup -> node sequence -> Office Math display block."""
    target = 'omml'

    def __init__(self, alignment: str = 'center'):
        self.alignment = alignment

    def render(self, markup: str) -> Optional[etree._Element]:
        return latex_to_omml(markup, self.alignment)


class PreviewRenderer:
    """Library based: markup -> MathML, without the parser tree."""
    target = 'mathml'

    def render(self, markup: str) -> PreviewResult:
        return render_preview(markup)


RENDERERS: Dict[str, Any] = {renderer.target: renderer for renderer in (OmmlRenderer(), PreviewRenderer())}


def render(markup: str, target: str):
    """
    Renders ``markup`` for the given target ('omml' or 'mathml').

    The two pipelines do not share a grammar, so they may disagree on syntax
    the parser does not support.
    """
    renderer = RENDERERS.get(target)
    if renderer is None:
        raise ValueError(f"Unknown render target '{target}'. Expected one of: {', '.join(RENDERERS)}")
    return renderer.render(markup)
