# main.py

from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
import uvicorn
from loguru import logger
from lxml import etree
from pydantic import BaseModel, Field, ValidationError

from question_bank.config import configure_logging, get_settings
from question_bank.exam_document import create_exam_document, create_formula_document
from question_bank.image_utils import compress_image, to_data_url
from question_bank.latex_parser import parse_latex
from question_bank.preview import PreviewResult
from question_bank.rendering import OmmlRenderer, render
from question_bank.schemas import TAG_TYPE_NAMES, BankData, Question, Tag, TagType, TagValue
from question_bank.store import QuestionBank, generate_id, open_question_bank

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

settings = get_settings()
configure_logging(settings.LOG_LEVEL)

_bank: Optional[QuestionBank] = None


def get_bank() -> QuestionBank:
    """Lazily opens the shared bank; tests replace this dependency."""
    global _bank
    if _bank is None:
        _bank = open_question_bank(settings.DB_PATH)
    return _bank


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if _bank is not None and _bank.storage is not None:
        _bank.storage.close()
        logger.info("Question bank storage closed.")


class TagCreate(BaseModel): name: str; color: str = ""; required: bool = False; type: TagType = TagType.none; options: List[str] = Field(default_factory=list)
class QuestionCreate(BaseModel): title: str = ""; content: str = ""; answers: List[str] = Field(default_factory=list); tags: Dict[str, TagValue] = Field(default_factory=dict); images: Optional[List[str]] = None
class FilterRequest(BaseModel): selectors: Dict[str, Any] = Field(default_factory=dict)
class PreviewRequest(BaseModel): text: str
class ParseRequest(BaseModel): latex: str
class OmmlRequest(BaseModel): latex: str; alignment: str = "center"
class ExportRequest(BaseModel): question_ids: Optional[List[str]] = None; title: Optional[str] = None; include_answers: bool = True
class FormulaSheetRequest(BaseModel): formulas: List[str]


app = FastAPI(
    title="题库 API",
    description="管理题目与标签，预览 LaTeX 公式，并导出 Word 试卷",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _docx_response(content: bytes, file_name: str) -> Response:
    return Response(
        content=content,
        media_type=DOCX_MIME,
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


@app.get("/")
def read_root():
    """根路径，用于检查API服务是否正常运行。"""
    return {"message": "题库 API 运行正常！"}


# --- Tags ---
@app.get("/tag-types")
def list_tag_types():
    """标签类型及其显示名称。"""
    return [{"type": int(tag_type), "name": name} for tag_type, name in TAG_TYPE_NAMES.items()]


@app.get("/tags", response_model=List[Tag])
def list_tags(bank: QuestionBank = Depends(get_bank)):
    return bank.list_tags()


@app.post("/tags", response_model=Tag, status_code=201)
def create_tag(request: TagCreate, bank: QuestionBank = Depends(get_bank)):
    return bank.add_tag(Tag(id=generate_id(), **request.model_dump()))


@app.patch("/tags/{tag_id}", response_model=Tag)
def update_tag(tag_id: str, patch: Dict[str, Any], bank: QuestionBank = Depends(get_bank)):
    try:
        tag = bank.update_tag(tag_id, patch)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    if tag is None:
        raise HTTPException(status_code=404, detail=f"Tag '{tag_id}' not found.")
    return tag


@app.delete("/tags/{tag_id}", status_code=204)
def delete_tag(tag_id: str, bank: QuestionBank = Depends(get_bank)):
    if not bank.remove_tag(tag_id):
        raise HTTPException(status_code=404, detail=f"Tag '{tag_id}' not found.")
    return Response(status_code=204)


# --- Questions ---
@app.get("/questions", response_model=List[Question])
def list_questions(bank: QuestionBank = Depends(get_bank)):
    return bank.list_questions()


@app.post("/questions", response_model=Question, status_code=201)
def create_question(request: QuestionCreate, bank: QuestionBank = Depends(get_bank)):
    question = Question.model_validate({"id": generate_id(), **request.model_dump()})
    return bank.add_question(question)


@app.post("/questions/filter", response_model=List[Question])
def filter_questions(request: FilterRequest, bank: QuestionBank = Depends(get_bank)):
    return bank.filter_questions(request.selectors)


@app.get("/questions/{question_id}", response_model=Question)
def get_question(question_id: str, bank: QuestionBank = Depends(get_bank)):
    question = bank.get_question(question_id)
    if question is None:
        raise HTTPException(status_code=404, detail=f"Question '{question_id}' not found.")
    return question


@app.patch("/questions/{question_id}", response_model=Question)
def update_question(question_id: str, patch: Dict[str, Any], bank: QuestionBank = Depends(get_bank)):
    try:
        question = bank.update_question(question_id, patch)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    if question is None:
        raise HTTPException(status_code=404, detail=f"Question '{question_id}' not found.")
    return question


@app.delete("/questions/{question_id}", status_code=204)
def delete_question(question_id: str, bank: QuestionBank = Depends(get_bank)):
    if not bank.remove_question(question_id):
        raise HTTPException(status_code=404, detail=f"Question '{question_id}' not found.")
    return Response(status_code=204)


# --- Import / export of the whole bank ---
@app.get("/data", response_model=BankData)
def export_data(bank: QuestionBank = Depends(get_bank)):
    return bank.export_data()


@app.post("/data/replace", response_model=BankData)
def replace_data(data: BankData, bank: QuestionBank = Depends(get_bank)):
    bank.replace_all(data)
    return bank.export_data()


@app.post("/data/merge", response_model=BankData)
def merge_data(data: BankData, bank: QuestionBank = Depends(get_bank)):
    bank.merge_data(data)
    return bank.export_data()


# --- Formulas ---
@app.post("/preview", response_model=PreviewResult)
def preview_endpoint(request: PreviewRequest):
    """编辑器实时预览：返回 MathML；渲染失败时返回原文和错误提示。"""
    return render(request.text, "mathml")


@app.post("/parse")
def parse_endpoint(request: ParseRequest):
    """Returns the parsed formula tree as JSON."""
    return {"nodes": [node.model_dump() for node in parse_latex(request.latex)]}


@app.post("/omml")
def omml_endpoint(request: OmmlRequest):
    if request.alignment not in ("left", "center", "right"):
        raise HTTPException(status_code=400, detail=f"Unsupported alignment '{request.alignment}'.")
    omml_element = OmmlRenderer(request.alignment).render(request.latex)
    if omml_element is None:
        return {"omml": None}
    return {"omml": etree.tostring(omml_element, encoding="unicode")}


@app.post("/export")
def export_endpoint(request: ExportRequest, bank: QuestionBank = Depends(get_bank)):
    """导出 Word 试卷。未指定 question_ids 时导出全部题目。"""
    if request.question_ids is None:
        questions = bank.list_questions()
    else:
        questions = []
        for question_id in request.question_ids:
            question = bank.get_question(question_id)
            if question is None:
                raise HTTPException(status_code=404, detail=f"Question '{question_id}' not found.")
            questions.append(question)

    docx_bytes = create_exam_document(questions, request.title or settings.DOCUMENT_TITLE, request.include_answers)
    return _docx_response(docx_bytes, "exercises.docx")


@app.post("/formula-sheet")
def formula_sheet_endpoint(request: FormulaSheetRequest):
    docx_bytes = create_formula_document(request.formulas, settings.FORMULA_ALIGNMENT)
    return _docx_response(docx_bytes, "formulas.docx")


@app.post("/images/compress")
async def compress_image_endpoint(file: UploadFile = File(...), as_data_url: bool = False):
    """
    接收上传的图片，缩放并重新编码为 JPEG 后返回。
    With ``as_data_url=true`` the result is returned as a data URL, ready to be
    stored in ``Question.images``.
    """
    if not file.content_type or not file.content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="上传的文件不是图片类型。")

    image_bytes = await file.read()
    try:
        compressed = compress_image(image_bytes, settings.IMAGE_MAX_SIZE, settings.IMAGE_QUALITY)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"无法处理图片: {e}")
    if as_data_url:
        return {"data_url": to_data_url(compressed, "image/jpeg")}
    return Response(content=compressed, media_type="image/jpeg")


if __name__ == "__main__":
    # 也可以直接运行: uvicorn main:app --reload
    uvicorn.run(app, host="127.0.0.1", port=8000)
