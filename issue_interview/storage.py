"""Durable storage for interviews and captured thoughts.

Each interview is one JSON record under
``<root>/.issue-interview/interviews/<id>.json``. Writes go to a
temporary file that is fsynced and then swapped into place, so a failed
write never leaves a partial record visible to later reads.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from filelock import FileLock, Timeout

from .errors import InterviewBusyError, NotFoundError, StoreError
from .interview_logging import log_error_with_context, log_operation, log_performance
from .models import CapturedThought, InterviewState, parse_timestamp, utc_timestamp

logger = logging.getLogger("issue_interview.storage")

_SAFE_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


def _atomic_write_json(path: Path, payload: Any) -> None:
    """Write JSON to ``path`` via a fsynced temporary file and ``os.replace``."""
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


class InterviewStore:
    """Keyed, file-backed store of :class:`InterviewState` records."""

    def __init__(
        self,
        root: Path | str,
        storage_dir_name: str = ".issue-interview",
        *,
        lock_timeout: float = 0.5,
    ):
        self.root = Path(root).resolve()
        self.base_dir = self.root / storage_dir_name
        self.interviews_dir = self.base_dir / "interviews"
        self.locks_dir = self.base_dir / "locks"
        self.lock_timeout = lock_timeout
        try:
            self.interviews_dir.mkdir(parents=True, exist_ok=True)
            self.locks_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create interview storage directories: {e}")
            raise StoreError(f"Could not initialize interview storage at {self.base_dir}: {e}") from e
        logger.debug(f"Interview store ready at {self.interviews_dir}")

    # ------------------------------------------------------------------
    # Paths and locking
    # ------------------------------------------------------------------

    @staticmethod
    def is_valid_id(interview_id: str) -> bool:
        return bool(interview_id) and bool(_SAFE_ID.match(interview_id))

    def _record_path(self, interview_id: str) -> Path:
        return self.interviews_dir / f"{interview_id}.json"

    def _lock_path(self, interview_id: str) -> Path:
        return self.locks_dir / f"{interview_id}.lock"

    @contextmanager
    def lock(self, interview_id: str) -> Iterator[None]:
        """Hold the per-interview lock; raise :class:`InterviewBusyError` on timeout.

        Only stored interviews can be locked, so unknown ids leave no lock
        file behind. Callers re-read the record once the lock is held.
        """
        if not self.is_valid_id(interview_id) or not self._record_path(interview_id).exists():
            raise NotFoundError(interview_id)
        file_lock = FileLock(str(self._lock_path(interview_id)), timeout=self.lock_timeout)
        try:
            file_lock.acquire()
        except Timeout:
            logger.warning(f"Interview '{interview_id}' is locked by another submission")
            raise InterviewBusyError(interview_id) from None
        try:
            yield
        finally:
            file_lock.release()

    # ------------------------------------------------------------------
    # Record access
    # ------------------------------------------------------------------

    @log_performance("store_save")
    def save(self, state: InterviewState) -> None:
        """Durably persist ``state``; the previous record survives any failure."""
        if not self.is_valid_id(state.id):
            raise StoreError(f"Refusing to store interview with unsafe id '{state.id}'", interview_id=state.id)
        path = self._record_path(state.id)
        try:
            with log_operation("store_save", interview_id=state.id):
                _atomic_write_json(path, state.to_dict())
        except OSError as e:
            log_error_with_context(e, {"operation": "store_save", "interview_id": state.id, "path": str(path)})
            raise StoreError(f"Failed to persist interview '{state.id}': {e}", interview_id=state.id) from e

    def load(self, interview_id: str) -> Optional[InterviewState]:
        """Return the stored interview, or None when no record exists."""
        if not self.is_valid_id(interview_id):
            return None
        path = self._record_path(interview_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StoreError(f"Failed to read interview '{interview_id}': {e}", interview_id=interview_id) from e
        try:
            return InterviewState.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise StoreError(
                f"Interview record '{interview_id}' is corrupt: {e}", interview_id=interview_id
            ) from e

    def require(self, interview_id: str) -> InterviewState:
        state = self.load(interview_id)
        if state is None:
            raise NotFoundError(interview_id)
        return state

    def delete(self, interview_id: str) -> bool:
        if not self.is_valid_id(interview_id):
            return False
        try:
            self._record_path(interview_id).unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StoreError(f"Failed to delete interview '{interview_id}': {e}", interview_id=interview_id) from e
        try:
            self._lock_path(interview_id).unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove lock file for interview '{interview_id}': {e}")
        logger.info(f"Deleted interview '{interview_id}'")
        return True

    def list_interviews(self) -> List[InterviewState]:
        """All readable interviews, oldest first; corrupt records are skipped."""
        interviews: List[InterviewState] = []
        for path in sorted(self.interviews_dir.glob("*.json")):
            try:
                state = self.load(path.stem)
            except StoreError as e:
                logger.warning(f"Skipping unreadable interview record {path.name}: {e}")
                continue
            if state is not None:
                interviews.append(state)
        interviews.sort(key=lambda item: (item.created_at, item.id))
        return interviews

    def list_active(self) -> List[InterviewState]:
        return [state for state in self.list_interviews() if not state.complete]

    @log_performance("store_cleanup")
    def cleanup(self, retention: timedelta, now: Optional[datetime] = None) -> int:
        """Remove completed interviews last updated before ``now - retention``."""
        now = now or datetime.now(timezone.utc)
        horizon = now - retention
        removed = 0
        for state in self.list_interviews():
            if not state.complete:
                continue
            try:
                updated = parse_timestamp(state.updated_at)
            except ValueError:
                logger.warning(f"Interview '{state.id}' has an unparseable timestamp; keeping it")
                continue
            if updated < horizon and self.delete(state.id):
                removed += 1
        if removed:
            logger.info(f"Cleaned up {removed} completed interview(s) older than {retention}")
        return removed

    def stats(self) -> Dict[str, Any]:
        interviews = self.list_interviews()
        completed = [state for state in interviews if state.complete]
        return {
            "total_interviews": len(interviews),
            "active_interviews": len(interviews) - len(completed),
            "completed_interviews": len(completed),
            "oldest_interview": min((state.created_at for state in interviews), default=None),
            "storage_path": str(self.interviews_dir),
        }


class ThoughtStore:
    """Append-only list of captured thoughts in ``thoughts.json``."""

    def __init__(self, root: Path | str, storage_dir_name: str = ".issue-interview", *, lock_timeout: float = 5.0):
        self.base_dir = Path(root).resolve() / storage_dir_name
        self.path = self.base_dir / "thoughts.json"
        self.lock_path = self.base_dir / "thoughts.json.lock"
        self.lock_timeout = lock_timeout
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"Could not initialize thought storage at {self.base_dir}: {e}") from e

    def _read(self) -> List[Dict[str, Any]]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StoreError(f"Failed to read captured thoughts: {e}") from e
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise StoreError(f"Captured thoughts file is corrupt: {e}") from e
        return data.get("thoughts", []) if isinstance(data, dict) else list(data)

    def capture(self, thought: CapturedThought) -> CapturedThought:
        try:
            with FileLock(str(self.lock_path), timeout=self.lock_timeout):
                records = self._read()
                records.append(thought.to_dict())
                _atomic_write_json(self.path, {"thoughts": records, "updated_at": utc_timestamp()})
        except Timeout:
            raise StoreError("Captured thoughts are locked by another writer; retry shortly") from None
        except OSError as e:
            raise StoreError(f"Failed to persist thought '{thought.id}': {e}") from e
        logger.info(f"Captured thought '{thought.id}' as {thought.category}")
        return thought

    def list_thoughts(self, category: Optional[str] = None, limit: Optional[int] = None) -> List[CapturedThought]:
        """Captured thoughts, newest first."""
        thoughts = [CapturedThought.from_dict(record) for record in self._read()]
        if category:
            thoughts = [thought for thought in thoughts if thought.category == category]
        thoughts.reverse()
        if limit is not None:
            thoughts = thoughts[:max(limit, 0)]
        return thoughts
