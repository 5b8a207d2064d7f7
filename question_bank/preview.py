# question_bank/preview.py
import re
from typing import Optional

from latex2mathml.converter import convert as latex2mathml_convert
from loguru import logger
from pydantic import BaseModel

# 混合文本中的行内公式：$...$
INLINE_FORMULA_RE = re.compile(r'\$(.+?)\$')


class PreviewResult(BaseModel):
    html: str
    error: Optional[str] = None


def _to_mathml(formula: str) -> str:
    return latex2mathml_convert(formula, display="inline")


def render_preview(text: str) -> PreviewResult:
    """
    解析 LaTeX 公式为 MathML（用于编辑器预览）。
    支持混合文本：普通文字 + $公式$，或纯 LaTeX 代码。

    The preview does not use the parser tree. If the converter rejects the
    markup, the original text comes back unchanged together with an error
    message the caller can show as a notification.
    """
    if not text:
        return PreviewResult(html="")

    try:
        if '$' in text:
            html = INLINE_FORMULA_RE.sub(lambda m: _to_mathml(m.group(1).strip()), text)
        else:
            html = _to_mathml(text)
    except Exception as e:
        logger.warning(f"LaTeX 预览渲染失败: {type(e).__name__}: {e}")
        return PreviewResult(html=text, error=f"LaTeX 解析错误: {e}")

    return PreviewResult(html=html)
