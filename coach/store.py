"""Flat-file stores for saved words and saved lessons."""

import fcntl
import json
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel

import config
from coach.logger import get_logger
from coach.models import SavedLesson, SavedWord

R = TypeVar("R", bound=BaseModel)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class JsonListStore(Generic[R]):
    """A whole-file JSON array of records guarded by an exclusive file lock.

    Every mutation is read-all, change, write-all inside the lock, so two
    concurrent saves cannot lose each other's update.
    """

    record_type: type[R]
    _thread_lock = threading.Lock()

    def __init__(self, path: Path):
        """
        Initialize the store.

        Args:
            path: Path to the JSON file holding the records
        """
        self.path = path
        self._lock_path = path.with_suffix(".lock")

    @contextmanager
    def _file_lock(self):
        """Exclusive lock across threads (threading.Lock) and processes (fcntl)."""
        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        with self._thread_lock, open(self._lock_path, "w") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _read(self) -> list[R]:
        if not self.path.exists():
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return [self.record_type.model_validate(item) for item in data]

    def _write(self, records: list[R]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(
                [r.model_dump(mode="json") for r in records],
                f,
                ensure_ascii=False,
                indent=4,
            )

    @staticmethod
    def _new_id(records: list[R]) -> str:
        """Millisecond timestamp id, bumped until unique within the store."""
        taken = {r.id for r in records}
        candidate = time.time_ns() // 1_000_000
        while str(candidate) in taken:
            candidate += 1
        return str(candidate)

    def load_all(self) -> list[R]:
        """Return all records in insertion order."""
        with self._file_lock():
            return self._read()

    def get(self, record_id: str) -> Optional[R]:
        for record in self.load_all():
            if record.id == record_id:
                return record
        return None

    def delete(self, record_id: str) -> bool:
        """
        Remove a record by id.

        Returns:
            True if a record was removed, False if the id was unknown
        """
        with self._file_lock():
            records = self._read()
            remaining = [r for r in records if r.id != record_id]
            if len(remaining) == len(records):
                return False
            self._write(remaining)

        get_logger().info(f"Deleted {record_id} from {self.path.name}")
        return True


class SavedWordStore(JsonListStore[SavedWord]):
    """Words saved for pronunciation review, unique by word (case-insensitive)."""

    record_type = SavedWord

    def __init__(self, path: Path = config.SAVED_WORDS_JSON):
        super().__init__(path)

    def save(self, word: str, ipa: str = "", tips: str = "") -> tuple[SavedWord, bool]:
        """
        Save a word unless it is already stored.

        Args:
            word: The word text
            ipa: Optional IPA transcription
            tips: Optional pronunciation tip

        Returns:
            Tuple of (stored record, whether it was newly created)
        """
        word = word.strip()
        if not word:
            raise ValueError("Word is required")

        with self._file_lock():
            records = self._read()
            for existing in records:
                if existing.word.lower() == word.lower():
                    return existing, False

            record = SavedWord(
                id=self._new_id(records),
                word=word,
                ipa=ipa,
                tips=tips,
                created_at=_now(),
            )
            records.append(record)
            self._write(records)

        get_logger().info(f"Saved word: {word}")
        return record, True


class SavedLessonStore(JsonListStore[SavedLesson]):
    """Generated C1 lessons kept for later, unique by lesson id."""

    record_type = SavedLesson

    def __init__(self, path: Path = config.SAVED_LESSONS_JSON):
        super().__init__(path)

    def save(self, lesson: BaseModel | dict[str, Any]) -> tuple[SavedLesson, bool]:
        """
        Save a lesson. A payload carrying an id that is already stored is a no-op.

        Args:
            lesson: A C1Lesson model or the equivalent dict

        Returns:
            Tuple of (stored record, whether it was newly created)
        """
        payload = lesson.model_dump() if isinstance(lesson, BaseModel) else dict(lesson)

        with self._file_lock():
            records = self._read()
            lesson_id = payload.pop("id", None)
            if lesson_id is not None:
                for existing in records:
                    if existing.id == str(lesson_id):
                        return existing, False

            payload.pop("created_at", None)
            record = SavedLesson(
                id=str(lesson_id) if lesson_id is not None else self._new_id(records),
                created_at=_now(),
                **payload,
            )
            records.append(record)
            self._write(records)

        get_logger().info(f"Saved lesson {record.id}: {record.topic}")
        return record, True
