# question_bank/latex_parser.py
import string
from typing import Callable, Dict, List, Optional, Tuple

from loguru import logger

from .math_nodes import (
    Fraction, MathNode, Radical, RoundBrackets, Run, SquareBrackets, SubScript, SuperScript, flatten_text
)

# --- 1. 常量 ---
ESCAPE = '\\'
SUPERSCRIPT_OP = '^'
SUBSCRIPT_OP = '_'
# 普通文本段遇到这些字符即停止
PLAIN_STOP_CHARS = frozenset('\\^_{}()[]')
COMMAND_LETTERS = frozenset(string.ascii_letters)
VECTOR_ARROW = '⃗'

# (节点序列, 下一个扫描位置)
ParseResult = Tuple[List[MathNode], int]


# --- 2. Symbol and Function Maps ---
GREEK_LETTERS = {'alpha': 'α', 'beta': 'β', 'gamma': 'γ', 'delta': 'δ', 'epsilon': 'ε', 'varepsilon': 'ε',
                 'zeta': 'ζ', 'eta': 'η', 'theta': 'θ', 'vartheta': 'ϑ', 'iota': 'ι', 'kappa': 'κ',
                 'lambda': 'λ', 'mu': 'μ', 'nu': 'ν', 'xi': 'ξ', 'omicron': 'ο', 'pi': 'π', 'varpi': 'ϖ',
                 'rho': 'ρ', 'varrho': 'ϱ', 'sigma': 'σ', 'varsigma': 'ς', 'tau': 'τ', 'upsilon': 'υ',
                 'phi': 'φ', 'varphi': 'φ', 'chi': 'χ', 'psi': 'ψ', 'omega': 'ω', 'Gamma': 'Γ', 'Delta': 'Δ',
                 'Theta': 'Θ', 'Lambda': 'Λ', 'Xi': 'Ξ', 'Pi': 'Π', 'Sigma': 'Σ', 'Upsilon': 'Υ', 'Phi': 'Φ',
                 'Psi': 'Ψ', 'Omega': 'Ω'}
OPERATORS = {'times': '×', 'div': '÷', 'pm': '±', 'mp': '∓', 'neq': '≠', 'ne': '≠', 'leq': '≤', 'le': '≤',
             'geq': '≥', 'ge': '≥', 'll': '≪', 'gg': '≫', 'approx': '≈', 'equiv': '≡', 'sim': '∼',
             'simeq': '≃', 'cong': '≅', 'propto': '∝', 'cdot': '·', 'ast': '*', 'star': '⋆', 'circ': '∘',
             'bullet': '•', 'oplus': '⊕', 'ominus': '⊖', 'otimes': '⊗', 'oslash': '⊘', 'coprod': '∐',
             'bigcup': '⋃', 'bigcap': '⋂', 'in': '∈', 'notin': '∉', 'ni': '∋', 'subset': '⊂',
             'subseteq': '⊆', 'supset': '⊃', 'supseteq': '⊇', 'cup': '∪', 'cap': '∩', 'setminus': '∖',
             'neg': '¬', 'land': '∧', 'lor': '∨', 'perp': '⊥', 'parallel': '∥'}
ARROWS = {'to': '→', 'rightarrow': '→', 'leftarrow': '←', 'leftrightarrow': '↔', 'Rightarrow': '⇒',
          'implies': '⇒', 'Leftarrow': '⇐', 'Leftrightarrow': '⇔', 'iff': '⇔', 'uparrow': '↑',
          'downarrow': '↓', 'Uparrow': '⇑', 'Downarrow': '⇓'}
SYMBOLS = {'infty': '∞', 'emptyset': '∅', 'partial': '∂', 'nabla': '∇', 'forall': '∀', 'exists': '∃',
           'nexists': '∄', 'angle': '∠', 'triangle': '△', 'hbar': 'ħ', 'prime': '′', 'ldots': '…',
           'cdots': '⋯', 'vdots': '⋮', 'ddots': '⋱', 'langle': '⟨', 'rangle': '⟩', 'lceil': '⌈',
           'rceil': '⌉', 'lfloor': '⌊', 'rfloor': '⌋'}
SYMBOL_MAP = {**GREEK_LETTERS, **OPERATORS, **ARROWS, **SYMBOLS}
KNOWN_FUNCTIONS = {'sum', 'prod', 'int', 'iint', 'iiint', 'oint', 'lim', 'sin', 'cos', 'tan', 'cot', 'sec',
                   'csc', 'arcsin', 'arccos', 'arctan', 'sinh', 'cosh', 'tanh', 'coth', 'log', 'ln', 'lg',
                   'exp', 'max', 'min', 'det', 'dim', 'sup', 'inf'}
BLACKBOARD_LETTERS = {'N': 'ℕ', 'Z': 'ℤ', 'Q': 'ℚ', 'R': 'ℝ', 'C': 'ℂ'}
# \left 和 \right 本身不产生节点，后面的括号交给普通括号处理
SIZING_COMMANDS = {'left', 'right'}


# --- 3. 定界符与上下标提取 ---
def extract_balanced(latex: str, pos: int, open_c: str, close_c: str) -> Optional[Tuple[str, int]]:
    """
    Returns the text between ``latex[pos]`` (which must be ``open_c``) and its
    matching ``close_c``, plus the index just past the closing delimiter.

    The curly form skips leading whitespace first. An unterminated block runs to
    the end of the input and the returned index is clamped to ``len(latex)``.
    Returns None, without consuming anything, when no opening delimiter is found.
    """
    i = pos
    if open_c == '{':
        while i < len(latex) and latex[i].isspace():
            i += 1
    if i >= len(latex) or latex[i] != open_c:
        return None

    start = i + 1
    depth = 1
    for i in range(start, len(latex)):
        char = latex[i]
        if char == open_c:
            depth += 1
        elif char == close_c:
            depth -= 1
            if depth == 0:
                return latex[start:i], i + 1
    return latex[start:], len(latex)


def _parse_group(latex: str, pos: int, open_c: str, close_c: str) -> Optional[ParseResult]:
    extracted = extract_balanced(latex, pos, open_c, close_c)
    if extracted is None:
        return None
    content, next_pos = extracted
    return _build_nodes(content), next_pos


def _parse_block(latex: str, pos: int) -> Optional[ParseResult]:
    return _parse_group(latex, pos, '{', '}')


def read_script(latex: str, pos: int) -> Optional[ParseResult]:
    """上标/下标的操作数：花括号块，或者紧跟的单个字符。"""
    i = pos
    while i < len(latex) and latex[i].isspace():
        i += 1
    if i >= len(latex):
        return None
    if latex[i] == '{':
        return _parse_block(latex, i)
    return [Run(latex[i])], i + 1


# --- 4. 结构性命令 (Structural Builders) ---
def _build_fraction(latex: str, i: int, name: str) -> Optional[ParseResult]:
    numerator = _parse_block(latex, i)
    if numerator is None: return None
    denominator = _parse_block(latex, numerator[1])
    if denominator is None: return None
    return [Fraction(numerator=numerator[0], denominator=denominator[0])], denominator[1]


def _build_binomial(latex: str, i: int, name: str) -> Optional[ParseResult]:
    top = _parse_block(latex, i)
    if top is None: return None
    bottom = _parse_block(latex, top[1])
    if bottom is None: return None
    fraction = Fraction(numerator=top[0], denominator=bottom[0])
    return [RoundBrackets(children=[fraction])], bottom[1]


def _build_radical(latex: str, i: int, name: str) -> Optional[ParseResult]:
    degree = None
    if i < len(latex) and latex[i] == '[':
        degree, i = _parse_group(latex, i, '[', ']')
    content = _parse_block(latex, i)
    if content is None: return None
    return [Radical(content=content[0], degree=degree)], content[1]


def _build_vector(latex: str, i: int, name: str) -> Optional[ParseResult]:
    content = _parse_block(latex, i)
    if content is None: return None
    # 箭头是文本级装饰，不是结构节点
    return [Run(flatten_text(content[0]) + VECTOR_ARROW)], content[1]


def _build_blackboard(latex: str, i: int, name: str) -> Optional[ParseResult]:
    content = _parse_block(latex, i)
    if content is None: return None
    text = flatten_text(content[0])
    return [Run(BLACKBOARD_LETTERS.get(text, text))], content[1]


def _build_environment(latex: str, i: int, name: str) -> Optional[ParseResult]:
    env = extract_balanced(latex, i, '{', '}')
    if env is None: return None
    env_name, body_start = env[0].strip(), env[1]

    terminator = f'\\end{{{env_name}}}'
    end_pos = latex.find(terminator, body_start)
    if end_pos == -1:
        logger.debug(f"Environment '{env_name}' has no terminator, emitting it as text.")
        return [Run(f'\\begin{{{env_name}}}')], body_start

    body = latex[body_start:end_pos].strip().replace('\\\\', ' ; ').replace('&', ' ')
    return [SquareBrackets(children=[Run(body)])], end_pos + len(terminator)


STRUCTURAL_COMMANDS: Dict[str, Callable[[str, int, str], Optional[ParseResult]]] = {
    'frac': _build_fraction,
    'sqrt': _build_radical,
    'binom': _build_binomial,
    'vec': _build_vector,
    'overrightarrow': _build_vector,
    'mathbb': _build_blackboard,
    'begin': _build_environment,
}


# --- 5. 命令分发 (Command Dispatcher) ---
def _read_command_name(latex: str, pos: int) -> Tuple[str, int]:
    i = pos + 1
    while i < len(latex) and latex[i] in COMMAND_LETTERS:
        i += 1
    name = latex[pos + 1:i]
    while i < len(latex) and latex[i] == ' ':
        i += 1
    return name, i


def _parse_command(latex: str, pos: int) -> ParseResult:
    """
    Dispatches the command starting at ``latex[pos]`` (the escape character).

    Always advances past at least the escape character. Unknown commands, and
    structural commands whose blocks are missing, come back as literal text.
    """
    name, i = _read_command_name(latex, pos)

    if name in SYMBOL_MAP:
        return [Run(SYMBOL_MAP[name])], i
    if name in KNOWN_FUNCTIONS:
        return [Run(name)], i
    if name in SIZING_COMMANDS:
        return [], i

    builder = STRUCTURAL_COMMANDS.get(name)
    if builder is not None:
        result = builder(latex, i, name)
        if result is not None:
            return result
        logger.debug(f"'\\{name}' is missing its argument block, emitting it as text.")

    return [Run(ESCAPE + name)], i


def _attach_script(latex: str, pos: int, nodes: List[MathNode]) -> int:
    # 前一个已完成的节点（无论是否为复合节点）成为底数
    base = [nodes.pop()] if nodes else []
    result = read_script(latex, pos + 1)
    if result is None:
        nodes.extend(base)
        nodes.append(Run(latex[pos]))
        return pos + 1

    script, next_pos = result
    if latex[pos] == SUPERSCRIPT_OP:
        nodes.append(SuperScript(base=base, script=script))
    else:
        nodes.append(SubScript(base=base, script=script))
    return next_pos


# --- 6. 递归构建 (Recursive Tree Builder) ---
def _build_nodes(latex: str) -> List[MathNode]:
    nodes: List[MathNode] = []
    i = 0
    while i < len(latex):
        char = latex[i]

        if char == ESCAPE:
            produced, i = _parse_command(latex, i)
            nodes.extend(produced)
            continue

        if char in (SUPERSCRIPT_OP, SUBSCRIPT_OP):
            i = _attach_script(latex, i, nodes)
            continue

        if char == '(':
            children, i = _parse_group(latex, i, '(', ')')
            nodes.append(RoundBrackets(children=children))
            continue

        if char == '[':
            children, i = _parse_group(latex, i, '[', ']')
            nodes.append(SquareBrackets(children=children))
            continue

        end = i
        while end < len(latex) and latex[end] not in PLAIN_STOP_CHARS:
            end += 1
        if end > i:
            text = latex[i:end].strip()
            if text:
                nodes.append(Run(text))
            i = end
        else:
            # 游离的 '{', '}', ')' 或 ']'
            i += 1

    return nodes


def parse_latex(latex: str) -> List[MathNode]:
    """
    将 LaTeX 字符串解析为公式节点序列。

    This is a total function: every input, including malformed markup, yields a
    node sequence. Constructs that cannot be interpreted degrade to literal runs.
    """
    if not latex:
        return []
    try:
        return _build_nodes(latex)
    except RecursionError:
        logger.warning(f"Nesting too deep to parse ({len(latex)} chars), keeping the markup as plain text.")
        return [Run(latex)]
