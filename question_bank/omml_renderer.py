# question_bank/omml_renderer.py
from typing import List, Optional

from loguru import logger
from lxml import etree

from .latex_parser import parse_latex
from .math_nodes import (
    Fraction, MathNode, Radical, RoundBrackets, Run, SquareBrackets, SubScript, SuperScript
)

# --- 1. OMML 命名空间和常量 ---
M_NAMESPACE = "http://schemas.openxmlformats.org/officeDocument/2006/math"
XML_NAMESPACE = "http://www.w3.org/XML/1998/namespace"
M_PREFIX = "{%s}" % M_NAMESPACE
NSMAP = {'m': M_NAMESPACE}


def _m_tag(tag_name: str) -> str: return M_PREFIX + tag_name


def omml_text(elements: List[etree._Element]) -> str:
    """Recursively extracts all text from a list of OMML elements."""
    text_parts = []
    for elem in elements:
        for t in elem.xpath('descendant-or-self::m:t', namespaces=NSMAP):
            if t.text:
                text_parts.append(t.text)
    return "".join(text_parts)


# --- 2. OMML 元素构建器 (Element Builders) ---
def _create_run_omml(text: str) -> etree._Element:
    mr = etree.Element(_m_tag('r'))
    mt = etree.SubElement(mr, _m_tag('t'))
    if text.startswith(' ') or text.endswith(' '): mt.set('{%s}space' % XML_NAMESPACE, 'preserve')
    mt.text = text
    return mr


def _create_fraction_omml(num: List[etree._Element], den: List[etree._Element]) -> etree._Element:
    mf = etree.Element(_m_tag('f'))
    mnum = etree.SubElement(mf, _m_tag('num'))
    mden = etree.SubElement(mf, _m_tag('den'))
    for el in num: mnum.append(el)
    for el in den: mden.append(el)
    return mf


def _create_radical_omml(base: List[etree._Element], degree: Optional[List[etree._Element]]) -> etree._Element:
    mrad = etree.Element(_m_tag('rad'))
    mradPr = etree.SubElement(mrad, _m_tag('radPr'))
    if degree is None:
        mdegHide = etree.SubElement(mradPr, _m_tag('degHide'))
        mdegHide.set(_m_tag('val'), '1')
    mdeg = etree.SubElement(mrad, _m_tag('deg'))
    for el in degree or []: mdeg.append(el)
    me = etree.SubElement(mrad, _m_tag('e'))
    for el in base: me.append(el)
    return mrad


def _create_superscript_omml(base: List[etree._Element], sup: List[etree._Element]) -> etree._Element:
    msSup = etree.Element(_m_tag('sSup'))
    me = etree.SubElement(msSup, _m_tag('e'))
    msup = etree.SubElement(msSup, _m_tag('sup'))
    for el in base: me.append(el)
    for el in sup: msup.append(el)
    return msSup


def _create_subscript_omml(base: List[etree._Element], sub: List[etree._Element]) -> etree._Element:
    msSub = etree.Element(_m_tag('sSub'))
    me = etree.SubElement(msSub, _m_tag('e'))
    msub = etree.SubElement(msSub, _m_tag('sub'))
    for el in base: me.append(el)
    for el in sub: msub.append(el)
    return msSub


def _create_delimiter_omml(open_c: str, close_c: str, content: List[etree._Element]) -> etree._Element:
    md = etree.Element(_m_tag('d'))
    mdPr = etree.SubElement(md, _m_tag('dPr'))
    mbeg = etree.SubElement(mdPr, _m_tag('begChr'))
    mbeg.set(_m_tag('val'), open_c)
    mend = etree.SubElement(mdPr, _m_tag('endChr'))
    mend.set(_m_tag('val'), close_c)
    me = etree.SubElement(md, _m_tag('e'))
    for el in content: me.append(el)
    return md


# --- 3. 节点树 -> OMML ---
def nodes_to_omml(nodes: List[MathNode]) -> List[etree._Element]:
    """按顺序转换节点序列，递归处理子序列。"""
    return [_node_to_omml(node) for node in nodes]


def _node_to_omml(node: MathNode) -> etree._Element:
    if isinstance(node, Run):
        return _create_run_omml(node.text)
    if isinstance(node, Fraction):
        return _create_fraction_omml(nodes_to_omml(node.numerator), nodes_to_omml(node.denominator))
    if isinstance(node, Radical):
        degree = nodes_to_omml(node.degree) if node.degree is not None else None
        return _create_radical_omml(nodes_to_omml(node.content), degree)
    if isinstance(node, SuperScript):
        return _create_superscript_omml(nodes_to_omml(node.base), nodes_to_omml(node.script))
    if isinstance(node, SubScript):
        return _create_subscript_omml(nodes_to_omml(node.base), nodes_to_omml(node.script))
    if isinstance(node, RoundBrackets):
        return _create_delimiter_omml('(', ')', nodes_to_omml(node.children))
    if isinstance(node, SquareBrackets):
        return _create_delimiter_omml('[', ']', nodes_to_omml(node.children))
    raise TypeError(f"Unsupported math node: {type(node).__name__}")


def latex_to_omath(latex_string: str) -> Optional[etree._Element]:
    """
    Converts LaTeX into a bare ``<m:oMath>`` element for inline use inside a
    paragraph. Returns None when the markup produces no nodes or cannot be
    serialized (e.g. it contains characters XML does not allow).
    """
    nodes = parse_latex(latex_string)
    if not nodes:
        return None
    try:
        omml_math = etree.Element(_m_tag('oMath'), nsmap=NSMAP)
        for el in nodes_to_omml(nodes):
            omml_math.append(el)
    except ValueError as e:
        logger.warning(f"无法将公式写入 OMML '{latex_string}': {e}")
        return None
    return omml_math


def latex_to_omml(latex_string: str, alignment: str = 'center') -> Optional[etree._Element]:
    """将 LaTeX 转换为带对齐属性的 <m:oMathPara> 显示公式块。"""
    omml_math = latex_to_omath(latex_string)
    if omml_math is None:
        return None
    omml_para = etree.Element(_m_tag('oMathPara'), nsmap=NSMAP)
    omml_para_pr = etree.SubElement(omml_para, _m_tag('oMathParaPr'))
    jc = etree.SubElement(omml_para_pr, _m_tag('jc'))
    jc.set(_m_tag('val'), alignment)
    omml_para.append(omml_math)
    return omml_para
