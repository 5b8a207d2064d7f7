# question_bank/storage.py
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Union

from loguru import logger

from .schemas import BankData, Question, Tag

STORE_TAGS = "tags"
STORE_QUESTIONS = "questions"
IN_MEMORY = ":memory:"


class BankStorage:
    """
    SQLite 持久化：tags 与 questions 两张键值表，id -> JSON。

    The connection is opened lazily on first use, handed out through
    ``connect()`` and released by ``close()``. The object is owned by whoever
    creates it and is injected into ``QuestionBank``.
    """

    def __init__(self, db_path: Union[str, Path] = IN_MEMORY):
        self.db_path = str(db_path)
        self._connection: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    def _open(self) -> sqlite3.Connection:
        if self._connection is None:
            if self.db_path != IN_MEMORY:
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            connection = sqlite3.connect(self.db_path, check_same_thread=False)
            for table in (STORE_TAGS, STORE_QUESTIONS):
                connection.execute(f"CREATE TABLE IF NOT EXISTS {table} (id TEXT PRIMARY KEY, data TEXT NOT NULL)")
            connection.commit()
            logger.debug(f"Opened question bank database at {self.db_path}")
            self._connection = connection
        return self._connection

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Scoped access to the connection: commits on success, rolls back on error."""
        with self._lock:
            connection = self._open()
            try:
                yield connection
                connection.commit()
            except Exception:
                connection.rollback()
                raise

    def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    def __enter__(self) -> 'BankStorage':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def load_all(self) -> BankData:
        with self.connect() as connection:
            tag_rows = connection.execute(f"SELECT data FROM {STORE_TAGS} ORDER BY rowid").fetchall()
            question_rows = connection.execute(f"SELECT data FROM {STORE_QUESTIONS} ORDER BY rowid").fetchall()
        return BankData(
            tags=[Tag.model_validate_json(row[0]) for row in tag_rows],
            questions=[Question.model_validate_json(row[0]) for row in question_rows],
        )

    def save_all(self, tags: List[Tag], questions: List[Question]) -> None:
        """清空现有数据并整体写入，在同一事务中完成。"""
        with self.connect() as connection:
            connection.execute(f"DELETE FROM {STORE_TAGS}")
            connection.executemany(
                f"INSERT INTO {STORE_TAGS} (id, data) VALUES (?, ?)",
                [(tag.id, tag.model_dump_json()) for tag in tags],
            )
            connection.execute(f"DELETE FROM {STORE_QUESTIONS}")
            connection.executemany(
                f"INSERT INTO {STORE_QUESTIONS} (id, data) VALUES (?, ?)",
                [(question.id, question.model_dump_json()) for question in questions],
            )
