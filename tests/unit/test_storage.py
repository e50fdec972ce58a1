"""Unit tests for interview and thought storage."""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from issue_interview.errors import InterviewBusyError, NotFoundError, StoreError
from issue_interview.models import CapturedThought, InterviewState, TextAnswer
from issue_interview.storage import InterviewStore, ThoughtStore


def make_state(interview_id="interview-1", complete=False, updated_at="2024-01-01T00:00:00Z", created_at=None):
    state = InterviewState(
        id=interview_id,
        original_input="Add streaming STT",
        question_sequence=["title", "description"],
        complete=complete,
        updated_at=updated_at,
    )
    if created_at:
        state.created_at = created_at
    state.answers["title"] = TextAnswer("Add streaming STT")
    return state


class TestInterviewStoreInitialization:
    """Test cases for store layout."""

    def test_creates_directories(self, tmp_path):
        store = InterviewStore(tmp_path)

        assert store.root == tmp_path.resolve()
        assert store.interviews_dir == tmp_path.resolve() / ".issue-interview" / "interviews"
        assert store.interviews_dir.exists()
        assert store.locks_dir.exists()

    def test_custom_storage_dir(self, tmp_path):
        store = InterviewStore(tmp_path, ".custom")
        assert store.base_dir == tmp_path.resolve() / ".custom"

    @pytest.mark.parametrize("interview_id, valid", [
        ("interview-abc123", True),
        ("a.b_c", True),
        ("", False),
        ("../escape", False),
        ("nested/id", False),
        (".hidden", False),
    ])
    def test_is_valid_id(self, interview_id, valid):
        assert InterviewStore.is_valid_id(interview_id) is valid


class TestInterviewStoreRecords:
    """Test cases for saving, loading and deleting interviews."""

    def test_save_and_load(self, store):
        state = make_state()
        store.save(state)

        loaded = store.load(state.id)

        assert loaded == state
        data = json.loads((store.interviews_dir / f"{state.id}.json").read_text(encoding="utf-8"))
        assert data["answers"]["title"] == {"kind": "text", "value": "Add streaming STT"}

    def test_save_leaves_no_temporary_files(self, store):
        store.save(make_state())
        assert [path.name for path in store.interviews_dir.iterdir()] == ["interview-1.json"]

    def test_load_missing_returns_none(self, store):
        assert store.load("interview-missing") is None
        assert store.load("../etc/passwd") is None

    def test_require_missing_raises(self, store):
        with pytest.raises(NotFoundError) as exc_info:
            store.require("interview-missing")
        assert exc_info.value.interview_id == "interview-missing"

    def test_corrupt_record_raises_store_error(self, store):
        (store.interviews_dir / "interview-bad.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(StoreError, match="corrupt"):
            store.load("interview-bad")

    @pytest.mark.parametrize("answers", [{"title": None}, {"title": 42}, ["title"]])
    def test_malformed_answers_raise_store_error(self, store, answers):
        store.save(make_state("interview-bad"))
        path = store.interviews_dir / "interview-bad.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        data["answers"] = answers
        path.write_text(json.dumps(data), encoding="utf-8")

        with pytest.raises(StoreError, match="corrupt") as exc_info:
            store.load("interview-bad")
        assert exc_info.value.interview_id == "interview-bad"

    def test_save_rejects_unsafe_id(self, store):
        with pytest.raises(StoreError):
            store.save(make_state("../escape"))

    def test_failed_write_keeps_previous_record(self, store):
        state = make_state()
        store.save(state)
        state.answers["title"] = TextAnswer("Changed")

        with patch("issue_interview.storage.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(StoreError, match="disk full"):
                store.save(state)

        assert store.load(state.id).answer_text("title") == "Add streaming STT"
        assert [path.name for path in store.interviews_dir.iterdir()] == ["interview-1.json"]

    def test_delete(self, store):
        store.save(make_state())
        assert store.delete("interview-1") is True
        assert store.delete("interview-1") is False
        assert store.load("interview-1") is None


class TestInterviewStoreListing:
    """Test cases for listing, cleanup and stats."""

    def test_list_sorted_by_creation_and_skips_corrupt(self, store):
        store.save(make_state("interview-b", created_at="2024-01-02T00:00:00Z"))
        store.save(make_state("interview-a", created_at="2024-01-03T00:00:00Z"))
        store.save(make_state("interview-c", complete=True, created_at="2024-01-01T00:00:00Z"))
        (store.interviews_dir / "interview-bad.json").write_text("[]", encoding="utf-8")

        ids = [state.id for state in store.list_interviews()]

        assert ids == ["interview-c", "interview-b", "interview-a"]
        assert [state.id for state in store.list_active()] == ["interview-b", "interview-a"]

    def test_malformed_answer_does_not_hide_other_interviews(self, store):
        store.save(make_state("interview-good"))
        store.save(make_state("interview-bad", complete=True))
        path = store.interviews_dir / "interview-bad.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        data["answers"] = {"title": None}
        path.write_text(json.dumps(data), encoding="utf-8")

        assert [state.id for state in store.list_active()] == ["interview-good"]
        assert store.stats()["total_interviews"] == 1
        assert store.cleanup(timedelta(days=-1)) == 0

    def test_cleanup_removes_only_old_completed(self, store):
        now = datetime(2024, 2, 1, tzinfo=timezone.utc)
        store.save(make_state("interview-old-done", complete=True, updated_at="2024-01-01T00:00:00Z"))
        store.save(make_state("interview-new-done", complete=True, updated_at="2024-01-30T00:00:00Z"))
        store.save(make_state("interview-old-active", complete=False, updated_at="2024-01-01T00:00:00Z"))

        removed = store.cleanup(timedelta(days=7), now=now)

        assert removed == 1
        remaining = {state.id for state in store.list_interviews()}
        assert remaining == {"interview-new-done", "interview-old-active"}

    def test_stats(self, store):
        store.save(make_state("interview-a", created_at="2024-01-02T00:00:00Z"))
        store.save(make_state("interview-b", complete=True, created_at="2024-01-01T00:00:00Z"))

        stats = store.stats()

        assert stats["total_interviews"] == 2
        assert stats["active_interviews"] == 1
        assert stats["completed_interviews"] == 1
        assert stats["oldest_interview"] == "2024-01-01T00:00:00Z"
        assert stats["storage_path"] == str(store.interviews_dir)

    def test_stats_empty(self, store):
        assert store.stats()["oldest_interview"] is None


class TestInterviewStoreLocking:
    """Test cases for per-interview locks."""

    @pytest.fixture(autouse=True)
    def stored_interviews(self, store):
        store.save(make_state("interview-1"))
        store.save(make_state("interview-2"))

    def test_lock_rejects_invalid_id(self, store):
        with pytest.raises(NotFoundError):
            with store.lock("../escape"):
                pass

    def test_unknown_interview_leaves_no_lock_file(self, store):
        with pytest.raises(NotFoundError) as exc_info:
            with store.lock("interview-doesnotexist"):
                pass

        assert exc_info.value.interview_id == "interview-doesnotexist"
        assert not (store.locks_dir / "interview-doesnotexist.lock").exists()

    def test_contended_lock_raises_busy(self, store):
        other = InterviewStore(store.root, lock_timeout=0.05)
        with store.lock("interview-1"):
            with pytest.raises(InterviewBusyError) as exc_info:
                with other.lock("interview-1"):
                    pass
        assert exc_info.value.interview_id == "interview-1"

    def test_lock_released_after_use(self, store):
        with store.lock("interview-1"):
            pass
        with store.lock("interview-1"):
            pass

    def test_different_interviews_do_not_contend(self, store):
        with store.lock("interview-1"):
            with store.lock("interview-2"):
                pass

    def test_delete_removes_lock_file(self, store):
        with store.lock("interview-1"):
            pass
        assert (store.locks_dir / "interview-1.lock").exists()

        store.delete("interview-1")

        assert not (store.locks_dir / "interview-1.lock").exists()

    def test_cleanup_removes_lock_files(self, store):
        store.save(make_state("interview-done", complete=True, updated_at="2024-01-01T00:00:00Z"))
        with store.lock("interview-done"):
            pass

        removed = store.cleanup(timedelta(days=7), now=datetime(2024, 2, 1, tzinfo=timezone.utc))

        assert removed == 1
        assert not (store.locks_dir / "interview-done.lock").exists()


class TestThoughtStore:
    """Test cases for captured thoughts."""

    def test_capture_and_list_newest_first(self, tmp_path):
        thoughts = ThoughtStore(tmp_path)
        thoughts.capture(CapturedThought(id="thought-1", content="first", category="bug-insight"))
        thoughts.capture(CapturedThought(id="thought-2", content="second", category="optimization"))

        listed = thoughts.list_thoughts()

        assert [thought.id for thought in listed] == ["thought-2", "thought-1"]
        data = json.loads(thoughts.path.read_text(encoding="utf-8"))
        assert len(data["thoughts"]) == 2
        assert "updated_at" in data

    def test_filter_and_limit(self, tmp_path):
        thoughts = ThoughtStore(tmp_path)
        for index in range(3):
            thoughts.capture(CapturedThought(id=f"thought-{index}", content="x", category="bug-insight"))
        thoughts.capture(CapturedThought(id="thought-x", content="y", category="optimization"))

        assert [t.id for t in thoughts.list_thoughts(category="optimization")] == ["thought-x"]
        assert [t.id for t in thoughts.list_thoughts(category="bug-insight", limit=2)] == ["thought-2", "thought-1"]
        assert thoughts.list_thoughts(limit=0) == []

    def test_empty_store(self, tmp_path):
        assert ThoughtStore(tmp_path).list_thoughts() == []

    def test_corrupt_file_raises(self, tmp_path):
        thoughts = ThoughtStore(tmp_path)
        thoughts.path.write_text("{oops", encoding="utf-8")
        with pytest.raises(StoreError, match="corrupt"):
            thoughts.list_thoughts()
