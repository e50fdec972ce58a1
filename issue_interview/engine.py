"""Interview engine: question sequencing, answers, follow-ups and completion.

The engine keeps no state between calls. Every mutation loads a fresh
copy from the store under the interview's lock, changes it in memory,
and persists it before returning.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

from .analyzer import HeuristicAnalyzer
from .catalog import QuestionCatalog
from .errors import InterviewBusyError, NotFoundError, ValidationError
from .interview_logging import (
    log_answer_recorded,
    log_error_with_context,
    log_interview_completed,
    log_interview_started,
    log_operation,
    log_performance,
)
from .models import InterviewQuestion, InterviewState, TextAnswer, coerce_answer, utc_timestamp
from .storage import InterviewStore

logger = logging.getLogger("issue_interview.engine")

_EXPECTED_ERRORS = (NotFoundError, ValidationError, InterviewBusyError)


def new_interview_id() -> str:
    return f"interview-{uuid.uuid4().hex}"


class InterviewEngine:
    """Drive interviews through the question catalog."""

    def __init__(
        self,
        store: InterviewStore,
        catalog: QuestionCatalog,
        analyzer: Optional[HeuristicAnalyzer] = None,
    ):
        self.store = store
        self.catalog = catalog
        self.analyzer = analyzer or HeuristicAnalyzer()

    @log_performance("start_interview")
    def start_interview(self, original_input: Optional[str] = "") -> InterviewState:
        """Create and persist a new interview seeded with heuristic suggestions."""
        original_input = original_input or ""
        text = original_input.strip()
        analyzer = self.analyzer
        try:
            with log_operation("start_interview", input_length=len(original_input)):
                category = analyzer.classify_category(text)
                urgency = analyzer.estimate_urgency(text)
                multi_repo = len(analyzer.infer_repositories(text, include_components=False)) > 1
                state = InterviewState(
                    id=new_interview_id(),
                    original_input=original_input,
                    question_sequence=self.catalog.initial_sequence(),
                    suggested_category=category,
                    suggested_priority=analyzer.suggest_priority(urgency),
                    suggested_issue_type=analyzer.map_category_to_template(category, multi_repo),
                    suggested_urgency=urgency,
                )
                if text and len(text) < analyzer.rules.short_title_length and "\n" not in text:
                    state.answers["title"] = TextAnswer(text)

                self.store.save(state)

            log_interview_started(
                state.id,
                suggested_category=state.suggested_category,
                suggested_priority=state.suggested_priority,
            )
            return state
        except Exception as e:
            logger.error(f"Failed to start interview: {e}")
            log_error_with_context(e, {"operation": "start_interview", "input_length": len(original_input)})
            raise

    @log_performance("submit_answer")
    def submit_answer(
        self,
        interview_id: str,
        answer: Any,
        question_id: Optional[str] = None,
    ) -> InterviewState:
        """Record an answer for the current question, or revise an earlier one.

        A revision (``question_id`` naming an already-answered question
        other than the current one) replaces the answer and never moves the
        cursor. While the interview is in progress, the follow-ups still
        waiting to be asked are brought in line with the revised answer.
        """
        try:
            with self.store.lock(interview_id), log_operation("submit_answer", interview_id=interview_id):
                state = self.store.require(interview_id)
                current = state.current_question_id
                target = question_id or current

                if target is None:
                    raise ValidationError(
                        f"Interview '{interview_id}' is already complete; name an answered question to revise it",
                        interview_id=interview_id,
                    )
                revision = target != current
                if revision and target not in state.answers:
                    raise ValidationError(
                        f"Question '{target}' is neither the current question nor already answered",
                        interview_id=interview_id,
                        problems=[f"current question is '{current}'" if current else "interview is complete"],
                    )

                was_complete = state.complete
                question = self.catalog.get(target)
                value = coerce_answer(answer, question.kind)
                state.answers[target] = value
                if revision:
                    self._revise_follow_ups(state, question)
                else:
                    self._advance(state, question)
                state.touch()

                self.store.save(state)

            log_answer_recorded(interview_id, target, revision=revision, cursor=state.question_cursor)
            if state.complete and not was_complete:
                log_interview_completed(interview_id, answered=len(state.answers))
            return state
        except _EXPECTED_ERRORS as e:
            logger.warning(f"Answer rejected for interview '{interview_id}': {e}")
            raise
        except Exception as e:
            logger.error(f"Failed to record answer for interview '{interview_id}': {e}")
            log_error_with_context(e, {"operation": "submit_answer", "interview_id": interview_id})
            raise

    def _advance(self, state: InterviewState, question: InterviewQuestion) -> None:
        position = state.question_cursor
        spawned = [
            follow_up_id
            for follow_up_id in question.follow_ups(state.answers[question.id])
            if follow_up_id not in state.answers and follow_up_id not in state.question_sequence
        ]
        if spawned:
            state.question_sequence[position + 1:position + 1] = spawned
            state.question_cursor = position + 1
            logger.debug(f"Interview '{state.id}' inserted follow-ups {spawned} after '{question.id}'")
            return

        cursor = position + 1
        while cursor < len(state.question_sequence) and state.question_sequence[cursor] in state.answers:
            cursor += 1
        state.question_cursor = cursor
        if cursor >= len(state.question_sequence):
            state.question_cursor = len(state.question_sequence)
            state.complete = True
            state.completed_at = utc_timestamp()

    def _revise_follow_ups(self, state: InterviewState, question: InterviewQuestion) -> None:
        if state.complete or not question.follow_up_rules:
            return
        position = state.question_cursor
        wanted = question.follow_ups(state.answers[question.id])
        stale = {qid for qid in question.follow_up_ids() if qid not in wanted and qid not in state.answers}
        pending = [qid for qid in state.question_sequence[position:] if qid not in stale]
        spawned = [qid for qid in wanted if qid not in state.answers and qid not in state.question_sequence]
        if not spawned and len(pending) == len(state.question_sequence) - position:
            return
        state.question_sequence[position:] = spawned + pending
        logger.debug(
            f"Interview '{state.id}' follow-ups revised after '{question.id}': added {spawned}, dropped {sorted(stale)}"
        )
        if position >= len(state.question_sequence):
            state.complete = True
            state.completed_at = utc_timestamp()

    def attach_issue_reference(self, interview_id: str, reference: Dict[str, Any]) -> InterviewState:
        """Remember the issue created from a completed interview."""
        with self.store.lock(interview_id):
            state = self.store.require(interview_id)
            state.issue_reference = dict(reference)
            state.touch()
            self.store.save(state)
        return state

    def get_interview(self, interview_id: str) -> InterviewState:
        return self.store.require(interview_id)

    def current_question(self, state: InterviewState) -> Optional[InterviewQuestion]:
        question_id = state.current_question_id
        return self.catalog.get(question_id) if question_id else None

    def list_active(self) -> List[InterviewState]:
        return self.store.list_active()

    def progress(self, state: InterviewState) -> Dict[str, Any]:
        total = len(state.question_sequence)
        answered = sum(1 for question_id in state.question_sequence if question_id in state.answers)
        percent = 100
        if total and not state.complete:
            percent = int(state.question_cursor * 100 / total)
        return {
            "position": state.question_cursor,
            "total": total,
            "answered": answered,
            "remaining": total - state.question_cursor,
            "percent_complete": percent,
        }
