# question_bank/schemas.py

from enum import IntEnum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


# ==============================================================================
# SECTION 1: TAG DEFINITIONS
# ==============================================================================
class TagType(IntEnum):
    none = 0
    text = 1
    number = 2
    boolean = 3
    select = 4
    multi_select = 5


TAG_TYPE_NAMES = {
    TagType.none: "无",
    TagType.text: "文本",
    TagType.number: "数字",
    TagType.boolean: "判断",
    TagType.select: "单选",
    TagType.multi_select: "多选",
}


class Tag(BaseModel):
    """题目标签的类型定义，例如“难度”（数字）或“知识点”（多选）。"""
    id: str
    name: str
    color: str = ""
    required: bool = False
    type: TagType = TagType.none
    options: List[str] = Field(default_factory=list)


# ==============================================================================
# SECTION 2: QUESTIONS
# ==============================================================================
class TagValue(BaseModel): value: Any = None


class Question(BaseModel):
    id: str
    title: str = ""
    content: str = Field("", description="题干，行内公式写作 $...$。")
    answers: List[str] = Field(default_factory=list)
    tags: Dict[str, TagValue] = Field(default_factory=dict, description="Tag id -> stored value.")
    images: Optional[List[str]] = Field(None, description="图片，以 data URL 形式保存。")


class BankData(BaseModel):
    """Import/export payload. A missing list leaves the corresponding collection untouched."""
    tags: Optional[List[Tag]] = None
    questions: Optional[List[Question]] = None
