# question_bank/exam_document.py
import io
import re
from typing import List, Optional

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Cm, Pt, RGBColor
from loguru import logger

from .image_utils import from_data_url
from .omml_renderer import latex_to_omath, latex_to_omml, omml_text
from .schemas import Question

ALIGNMENT_MAP = {
    'left': WD_ALIGN_PARAGRAPH.LEFT,
    'center': WD_ALIGN_PARAGRAPH.CENTER,
    'right': WD_ALIGN_PARAGRAPH.RIGHT,
}
INLINE_FORMULA_RE = re.compile(r'\$(.+?)\$')
CONTROL_CHAR_RE = re.compile(r'[\x00-\x1f\x7f-\x9f]')
# 普通文本保留制表符和换行
TEXT_CONTROL_CHAR_RE = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]')
IMAGE_WIDTH_CM = 8
DEFAULT_TITLE = "练习题"


def _add_failure_run(paragraph, latex_text: str):
    paragraph.add_run(f"[公式渲染失败: {latex_text}]").font.color.rgb = RGBColor(255, 0, 0)


def _add_text_run(paragraph, text: str):
    paragraph.add_run(TEXT_CONTROL_CHAR_RE.sub('', text))


def add_inline_formula(paragraph, latex_text: str):
    """将一段 LaTeX 以 <m:oMath> 的形式追加到段落中。"""
    # 净化输入字符串，移除ASCII控制字符
    latex_text = CONTROL_CHAR_RE.sub('', latex_text).strip()
    omath = latex_to_omath(latex_text)
    if omath is not None:
        paragraph._p.append(omath)
        logger.debug(f"Inserted formula: {omml_text([omath])}")
    else:
        logger.warning(f"公式没有生成任何内容: '{latex_text}'")
        _add_failure_run(paragraph, latex_text)


def add_mixed_content(paragraph, text: str):
    """
    Writes text with inline ``$...$`` formulas into a paragraph: plain segments
    become runs, formula segments become Office Math.
    """
    pos = 0
    for match in INLINE_FORMULA_RE.finditer(text):
        if match.start() > pos:
            _add_text_run(paragraph, text[pos:match.start()])
        add_inline_formula(paragraph, match.group(1))
        pos = match.end()
    if pos < len(text):
        _add_text_run(paragraph, text[pos:])


def add_image_from_data_url(doc, data_url: str):
    """
    根据 data URL 在文档中添加一张图片。

    Args:
        doc: python-docx的Document对象。
        data_url (str): 以 data URL 形式保存的图片。
    """
    try:
        image_bytes = from_data_url(data_url)
        doc.add_picture(io.BytesIO(image_bytes), width=Cm(IMAGE_WIDTH_CM))
    except Exception as e:
        logger.warning(f"插入图片时发生错误 ({type(e).__name__}: {e})，跳过此图片。")


def _add_question(doc, index: int, question: Question, include_answers: bool):
    heading = doc.add_paragraph()
    heading.add_run(f"{index}. ").bold = True
    add_mixed_content(heading, question.title)

    if question.content:
        add_mixed_content(doc.add_paragraph(), question.content)

    for data_url in question.images or []:
        add_image_from_data_url(doc, data_url)

    if include_answers and question.answers:
        label = doc.add_paragraph()
        label.add_run("答案：").bold = True
        for answer in question.answers:
            add_mixed_content(doc.add_paragraph(style='List Bullet'), answer)


def _to_bytes(doc) -> bytes:
    stream = io.BytesIO()
    doc.save(stream)
    return stream.getvalue()


def create_exam_document(questions: List[Question], title: Optional[str] = None,
                         include_answers: bool = True) -> bytes:
    """
    根据题目列表生成 Word 试卷。

    Args:
        questions (List[Question]): 要导出的题目，按顺序编号。
        title (Optional[str]): 文档标题。
        include_answers (bool): 是否在每道题后附上答案。

    Returns:
        bytes: 生成的 .docx 文件字节流。
    """
    doc = Document()
    doc.styles['Normal'].font.size = Pt(11)
    doc.add_heading(TEXT_CONTROL_CHAR_RE.sub('', title or DEFAULT_TITLE), level=0)

    for index, question in enumerate(questions, start=1):
        _add_question(doc, index, question, include_answers)

    logger.info(f"Exported {len(questions)} questions (answers included: {include_answers}).")
    return _to_bytes(doc)


def create_formula_document(formulas: List[str], alignment: str = 'center') -> bytes:
    """Renders each formula as its own display equation, one per paragraph."""
    doc = Document()
    for latex_text in formulas:
        latex_text = CONTROL_CHAR_RE.sub('', latex_text).strip()
        omml_para = latex_to_omml(latex_text, alignment)
        p = doc.add_paragraph()
        if omml_para is not None:
            p._p.append(omml_para)
        else:
            p.alignment = ALIGNMENT_MAP.get(alignment, WD_ALIGN_PARAGRAPH.CENTER)
            _add_failure_run(p, latex_text)
    return _to_bytes(doc)
