# question_bank/store.py
import functools
import sqlite3
import threading
import uuid
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from .schemas import BankData, Question, Tag, TagType
from .storage import BankStorage


def generate_id() -> str:
    return str(uuid.uuid4())


def _is_empty_selector(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, list) and len(value) == 0)


def _numeric_range(selector: Any) -> Optional[Tuple[float, float]]:
    """
    Returns the inclusive (min, max) bounds of a numeric selector, or None when
    the selector does not constrain anything. ``[0, 0]`` is treated as "no
    constraint", which also makes a genuine zero-to-zero range impossible.
    """
    if not isinstance(selector, (list, tuple)) or len(selector) < 2:
        return None
    try:
        low, high = float(selector[0]), float(selector[1])
    except (TypeError, ValueError):
        return None
    if low == high == 0:
        return None
    return low, high


def _locked(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class QuestionBank:
    """
    题库：标签定义与题目的内存聚合。

    Every mutation is followed by an explicit ``persist()``. Storage failures are
    logged and never roll back or corrupt the in-memory state.
    Mutations hold a re-entrant lock; the HTTP service calls them from a thread pool.
    """

    def __init__(self, storage: Optional[BankStorage] = None):
        self.storage = storage
        self.tags: List[Tag] = []
        self.questions: List[Question] = []
        self._lock = threading.RLock()

    # --- persistence ---
    @_locked
    def load(self) -> 'QuestionBank':
        if self.storage is None:
            return self
        try:
            data = self.storage.load_all()
        except (sqlite3.Error, OSError, ValueError) as e:
            logger.warning(f"Failed to load question bank from storage: {e}")
            return self

        if data.tags:
            self.tags[:] = data.tags
        if data.questions:
            self.questions[:] = data.questions
        logger.info(f"Loaded {len(self.tags)} tags and {len(self.questions)} questions.")
        return self

    def persist(self) -> bool:
        if self.storage is None:
            return False
        try:
            self.storage.save_all(self.tags, self.questions)
        except (sqlite3.Error, OSError) as e:
            logger.warning(f"Failed to persist question bank: {e}")
            return False
        return True

    # --- tags ---
    def list_tags(self) -> List[Tag]:
        return list(self.tags)

    def get_tag(self, tag_id: str) -> Optional[Tag]:
        return next((t for t in self.tags if t.id == tag_id), None)

    @_locked
    def add_tag(self, tag: Tag) -> Tag:
        self.tags.append(tag)
        self.persist()
        return tag

    @_locked
    def update_tag(self, tag_id: str, patch: Dict[str, Any]) -> Optional[Tag]:
        """Applies ``patch`` to the tag; raises ``ValidationError`` if the result is not a valid tag."""
        updated = None
        for index, tag in enumerate(self.tags):
            if tag.id == tag_id:
                updated = Tag.model_validate({**tag.model_dump(), **patch, 'id': tag_id})
                self.tags[index] = updated
                break
        self.persist()
        return updated

    @_locked
    def remove_tag(self, tag_id: str) -> bool:
        remaining = [t for t in self.tags if t.id != tag_id]
        removed = len(remaining) != len(self.tags)
        self.tags[:] = remaining
        self.persist()
        return removed

    # --- questions ---
    def list_questions(self) -> List[Question]:
        return list(self.questions)

    def get_question(self, question_id: str) -> Optional[Question]:
        return next((q for q in self.questions if q.id == question_id), None)

    @_locked
    def add_question(self, question: Question) -> Question:
        self.questions.append(question)
        self.persist()
        return question

    @_locked
    def update_question(self, question_id: str, patch: Dict[str, Any]) -> Optional[Question]:
        updated = None
        for index, question in enumerate(self.questions):
            if question.id == question_id:
                updated = Question.model_validate({**question.model_dump(), **patch, 'id': question_id})
                self.questions[index] = updated
                break
        self.persist()
        return updated

    @_locked
    def remove_question(self, question_id: str) -> bool:
        remaining = [q for q in self.questions if q.id != question_id]
        removed = len(remaining) != len(self.questions)
        self.questions[:] = remaining
        self.persist()
        return removed

    # --- import / export ---
    def export_data(self) -> BankData:
        return BankData(tags=list(self.tags), questions=list(self.questions))

    @_locked
    def replace_all(self, data: BankData) -> None:
        if data.tags is not None:
            self.tags[:] = data.tags
        if data.questions is not None:
            self.questions[:] = data.questions
        self.persist()

    @_locked
    def merge_data(self, data: BankData) -> None:
        """只追加 id 尚不存在的标签和题目。"""
        known_tags = {t.id for t in self.tags}
        for tag in data.tags or []:
            if tag.id not in known_tags:
                self.tags.append(tag)
                known_tags.add(tag.id)
        known_questions = {q.id for q in self.questions}
        for question in data.questions or []:
            if question.id not in known_questions:
                self.questions.append(question)
                known_questions.add(question.id)
        self.persist()

    # --- filtering ---
    def filter_questions(self, selectors: Dict[str, Any]) -> List[Question]:
        """
        Returns the questions matching every non-empty selector.

        Matching depends on the tag type: text is substring containment,
        select/boolean is equality, multi-select needs any overlapping value and
        number is an inclusive [min, max] range. Selectors for unknown tags are
        ignored.
        """
        return [q for q in self.questions if self._matches(q, selectors)]

    def _matches(self, question: Question, selectors: Dict[str, Any]) -> bool:
        for tag_id, s_value in selectors.items():
            if _is_empty_selector(s_value):
                continue

            stored = question.tags.get(tag_id)
            if stored is None or stored.value is None:
                return False
            q_value = stored.value

            tag = self.get_tag(tag_id)
            if tag is None:
                continue

            if tag.type == TagType.text:
                if str(s_value) not in str(q_value):
                    return False
            elif tag.type in (TagType.select, TagType.boolean):
                if q_value != s_value:
                    return False
            elif tag.type == TagType.multi_select:
                if not isinstance(q_value, list) or not isinstance(s_value, list):
                    return False
                if all(qv not in s_value for qv in q_value):
                    return False
            elif tag.type == TagType.number:
                bounds = _numeric_range(s_value)
                if bounds is None:
                    continue
                try:
                    number = float(q_value)
                except (TypeError, ValueError):
                    return False
                low, high = bounds
                if low > number or number > high:
                    return False
        return True


def open_question_bank(db_path: str) -> QuestionBank:
    """Creates a bank backed by SQLite at ``db_path`` and loads its contents."""
    return QuestionBank(BankStorage(db_path)).load()
