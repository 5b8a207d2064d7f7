# app.py

import json

import streamlit as st

from question_bank.config import configure_logging, get_settings
from question_bank.exam_document import create_formula_document
from question_bank.latex_parser import parse_latex
from question_bank.rendering import render

settings = get_settings()
configure_logging(settings.LOG_LEVEL)

# 设置页面标题和图标
st.set_page_config(page_title="LaTeX 公式工作台", page_icon="∑")

st.title("∑ LaTeX 公式工作台")
st.caption("输入公式，实时预览，并导出为 Word 公式。")

if 'latex_text' not in st.session_state:
    st.session_state.latex_text = ""

st.text_area(
    "请输入 LaTeX 公式（混合文本中的公式用 $...$ 包裹）：",
    height=150,
    key='latex_text',
    placeholder=r"例如：\frac{-b \pm \sqrt{b^2 - 4ac}}{2a}"
)

latex_text = st.session_state.latex_text
if latex_text:
    preview = render(latex_text, "mathml")
    if preview.error:
        st.toast(preview.error, icon="⚠️")
    st.markdown(preview.html, unsafe_allow_html=True)

    with st.expander("查看解析树 🌳"):
        nodes = [node.model_dump() for node in parse_latex(latex_text)]
        st.code(json.dumps(nodes, indent=2, ensure_ascii=False), language="json")

    st.download_button(
        label="📥 下载 Word 公式",
        data=create_formula_document([latex_text], settings.FORMULA_ALIGNMENT),
        file_name="formula.docx",
        mime="application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    )
else:
    st.info("请输入公式后查看预览。")
