"""Tests for the node tree -> OMML export renderer."""
import pytest
from lxml import etree

from question_bank.math_nodes import Fraction, Radical, Run, SquareBrackets
from question_bank.omml_renderer import (
    M_NAMESPACE, NSMAP, latex_to_omath, latex_to_omml, nodes_to_omml, omml_text
)
from question_bank.rendering import OmmlRenderer, PreviewRenderer, render


def _xpath(element, path):
    return element.xpath(path, namespaces=NSMAP)


def test_run_becomes_text_run():
    (element,) = nodes_to_omml([Run("x")])
    assert element.tag == "{%s}r" % M_NAMESPACE
    assert omml_text([element]) == "x"


def test_fraction_structure():
    (element,) = nodes_to_omml([Fraction(numerator=[Run("1")], denominator=[Run("2")])])
    assert omml_text(_xpath(element, "m:num")) == "1"
    assert omml_text(_xpath(element, "m:den")) == "2"


def test_radical_hides_missing_degree():
    (element,) = nodes_to_omml([Radical(content=[Run("x")])])
    assert _xpath(element, "m:radPr/m:degHide/@m:val") == ["1"]
    assert omml_text(_xpath(element, "m:e")) == "x"


def test_radical_with_degree():
    (element,) = nodes_to_omml([Radical(content=[Run("x")], degree=[Run("3")])])
    assert _xpath(element, "m:radPr/m:degHide") == []
    assert omml_text(_xpath(element, "m:deg")) == "3"


def test_square_brackets_delimiters():
    (element,) = nodes_to_omml([SquareBrackets(children=[Run("a")])])
    assert _xpath(element, "m:dPr/m:begChr/@m:val") == ["["]
    assert _xpath(element, "m:dPr/m:endChr/@m:val") == ["]"]


def test_latex_to_omml_wraps_display_block():
    para = latex_to_omml(r"x^2", alignment="left")
    assert para.tag == "{%s}oMathPara" % M_NAMESPACE
    assert _xpath(para, "m:oMathParaPr/m:jc/@m:val") == ["left"]
    sup = _xpath(para, "m:oMath/m:sSup")
    assert len(sup) == 1
    assert omml_text(_xpath(sup[0], "m:e")) == "x"
    assert omml_text(_xpath(sup[0], "m:sup")) == "2"


def test_round_brackets_from_binomial():
    omath = latex_to_omath(r"\binom{n}{k}")
    assert _xpath(omath, "m:d/m:dPr/m:begChr/@m:val") == ["("]
    assert len(_xpath(omath, "m:d/m:e/m:f")) == 1


def test_empty_markup_renders_nothing():
    assert latex_to_omml("") is None
    assert latex_to_omath("   ") is None


def test_control_characters_do_not_raise():
    assert latex_to_omath("a\x01b") is None


def test_output_serializes():
    para = latex_to_omml(r"\sqrt[3]{\frac{\alpha}{\beta}} + \vec{v}")
    xml = etree.tostring(para, encoding="unicode")
    assert "α" in xml and "β" in xml


def test_render_dispatches_by_target():
    assert render("x", "omml").tag == "{%s}oMathPara" % M_NAMESPACE
    assert render("x", "mathml").error is None


def test_render_rejects_unknown_target():
    with pytest.raises(ValueError):
        render("x", "svg")


def test_renderers_share_render_method():
    assert OmmlRenderer("right").render("y") is not None
    assert "<math" in PreviewRenderer().render("y").html
