"""Interview workflow orchestration.

This module composes the store, catalog, analyzer, engine, assembler and
issue backend into the operations exposed to tool callers. Every
operation returns a JSON-compatible dict carrying ``next_suggested_step``
and ``workflow_tip`` hints; domain errors come back as structured results
with the offending interview id.
"""

from __future__ import annotations

import inspect
import logging
import re
import uuid
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence

from .analyzer import HeuristicAnalyzer
from .assembler import build_issue_payload
from .backend import GitHubIssueBackend, IssueBackend
from .catalog import QuestionCatalog
from .config import Settings
from .engine import InterviewEngine
from .errors import BackendError, InterviewError
from .heuristics import HeuristicRules, load_rules
from .interview_logging import (
    log_error_with_context,
    log_issue_created,
    log_operation,
    log_performance,
    log_thought_captured,
)
from .models import CapturedThought, InterviewState
from .repositories import RepositoryRegistry
from .storage import InterviewStore, ThoughtStore

logger = logging.getLogger("issue_interview.workflow")

TOOLS = {
    "interview.start": "start_interview",
    "interview.answer": "answer_interview",
    "interview.get": "get_interview",
    "interview.listActive": "list_active_interviews",
    "interview.preview": "preview_issue",
    "interview.createIssue": "create_issue",
    "interview.cleanup": "cleanup_interviews",
    "interview.stats": "interview_stats",
    "analyzer.classify": "classify_thought",
    "analyzer.findRelated": "find_related_issues",
    "analyzer.evaluate": "evaluate_thought",
    "analyzer.recommend": "recommend_action",
    "thought.capture": "capture_thought",
    "thought.list": "list_thoughts",
}


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _tags(tags: Optional[Sequence[str]]) -> List[str]:
    return [str(tag).strip() for tag in (tags or []) if str(tag).strip()]


class InterviewWorkflow:
    """Application service behind the MCP tools and the ``invoke`` gateway."""

    def __init__(
        self,
        settings: Settings,
        backend: Optional[IssueBackend] = None,
        *,
        rules: Optional[HeuristicRules] = None,
    ):
        self.settings = settings
        self.rules = rules or load_rules(settings.heuristics_file)
        self.backend: IssueBackend = backend or GitHubIssueBackend(
            owner=settings.github_owner,
            token=settings.github_token,
            api_url=settings.github_api_url,
            timeout=settings.http_timeout,
        )
        self.store = InterviewStore(settings.root, settings.storage_dir_name, lock_timeout=settings.lock_timeout)
        self.thoughts = ThoughtStore(settings.root, settings.storage_dir_name)

        self.catalog = QuestionCatalog.for_repositories(settings.repositories)
        problems = self.catalog.validate()
        if problems:
            raise ValueError(f"Invalid question catalog: {'; '.join(problems)}")

        self.registry = RepositoryRegistry(
            settings.repositories,
            self.backend.list_open_issues,
            settings.default_repository,
            self.rules,
        )
        self.analyzer = HeuristicAnalyzer(self.registry, self.rules)
        self.engine = InterviewEngine(self.store, self.catalog, self.analyzer)

    # ------------------------------------------------------------------
    # Result helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _failure(error: InterviewError, *, suggestion: str, next_step: str, **extra: Any) -> Dict[str, Any]:
        result = error.to_dict()
        result.update({
            "suggestion": suggestion,
            "next_suggested_step": next_step,
            "workflow_tip": suggestion,
        })
        result.update(extra)
        return result

    def _interview_view(self, state: InterviewState) -> Dict[str, Any]:
        question = self.engine.current_question(state)
        current = None
        if question is not None:
            current = question.to_dict()
            current["prefilled_answer"] = state.answer_text(question.id)
        return {
            "interview_id": state.id,
            "complete": state.complete,
            "current_question": current,
            "progress": self.engine.progress(state),
            "suggestions": {
                "category": state.suggested_category,
                "priority": state.suggested_priority,
                "issue_type": state.suggested_issue_type,
                "urgency": state.suggested_urgency,
            },
            "answers": {question_id: answer.to_dict() for question_id, answer in state.answers.items()},
            "question_sequence": list(state.question_sequence),
            "issue_reference": state.issue_reference,
            "created_at": state.created_at,
            "updated_at": state.updated_at,
        }

    def _interview_summary(self, state: InterviewState) -> Dict[str, Any]:
        return {
            "interview_id": state.id,
            "title": state.answer_text("title"),
            "original_input": state.original_input,
            "current_question_id": state.current_question_id,
            "progress": self.engine.progress(state),
            "updated_at": state.updated_at,
        }

    # ------------------------------------------------------------------
    # Interviews
    # ------------------------------------------------------------------

    @log_performance("workflow_start_interview")
    def start_interview(self, original_input: str = "") -> Dict[str, Any]:
        """Start a new interview, seeding suggestions from the input text."""
        try:
            state = self.engine.start_interview(original_input)
        except InterviewError as e:
            return self._failure(e, suggestion="Check that the workspace is writable", next_step="start_interview")

        result = self._interview_view(state)
        question = result["current_question"]
        tip = "Answer the current question with answer_interview"
        if question and question.get("prefilled_answer"):
            tip = "A title was suggested from your input; confirm it or send a replacement with answer_interview"
        result.update({
            "message": f"Interview {state.id} started",
            "next_suggested_step": "answer_interview",
            "workflow_tip": tip,
        })
        return result

    @log_performance("workflow_answer_interview")
    def answer_interview(
        self,
        interview_id: str,
        answer: Any,
        question_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Record an answer and return the next question or the completed interview."""
        try:
            state = self.engine.submit_answer(interview_id, answer, question_id)
        except InterviewError as e:
            return self._failure(
                e,
                suggestion="Use list_active_interviews to find a valid interview, or retry if it was busy",
                next_step="list_active_interviews",
            )

        result = self._interview_view(state)
        if state.complete:
            result.update({
                "message": "Interview complete",
                "next_suggested_step": "preview_issue",
                "workflow_tip": "Review the assembled issue with preview_issue, then create it with create_issue",
            })
        else:
            result.update({
                "message": f"Recorded answer; next question is '{state.current_question_id}'",
                "next_suggested_step": "answer_interview",
                "workflow_tip": "Keep answering until the interview is complete",
            })
        return result

    def get_interview(self, interview_id: str) -> Dict[str, Any]:
        try:
            state = self.engine.get_interview(interview_id)
        except InterviewError as e:
            return self._failure(e, suggestion="The interview may have been cleaned up", next_step="list_active_interviews")
        result = self._interview_view(state)
        result["original_input"] = state.original_input
        result["next_suggested_step"] = "preview_issue" if state.complete else "answer_interview"
        return result

    def list_active_interviews(self) -> Dict[str, Any]:
        interviews = [self._interview_summary(state) for state in self.engine.list_active()]
        return {
            "interviews": interviews,
            "count": len(interviews),
            "message": (
                f"Found {len(interviews)} active interviews" if interviews
                else "No active interviews. Use start_interview to begin one."
            ),
            "next_suggested_step": "answer_interview" if interviews else "start_interview",
        }

    def preview_issue(
        self,
        interview_id: str,
        labels: Optional[Sequence[str]] = None,
        assignees: Optional[Sequence[str]] = None,
    ) -> Dict[str, Any]:
        """Assemble the issue payload without sending it."""
        try:
            state = self.engine.get_interview(interview_id)
            payload = build_issue_payload(
                state,
                self.settings.github_owner,
                self.settings.default_repository,
                labels=labels,
                assignees=assignees,
            )
        except InterviewError as e:
            return self._failure(e, suggestion="Answer at least the title or description first", next_step="answer_interview")

        return {
            "interview_id": interview_id,
            "complete": state.complete,
            "payload": payload.to_dict(),
            "next_suggested_step": "create_issue" if state.complete else "answer_interview",
            "workflow_tip": (
                "Create the issue with create_issue" if state.complete
                else "Finish the interview before creating the issue"
            ),
        }

    @log_performance("workflow_create_issue")
    def create_issue(
        self,
        interview_id: str,
        labels: Optional[Sequence[str]] = None,
        assignees: Optional[Sequence[str]] = None,
    ) -> Dict[str, Any]:
        """Send a completed interview to the issue backend.

        Backend failures leave the interview untouched so the call can be
        retried without repeating the interview.
        """
        try:
            state = self.engine.get_interview(interview_id)
            if state.issue_reference:
                return {
                    "interview_id": interview_id,
                    "issue": state.issue_reference,
                    "already_created": True,
                    "message": f"Issue already created: {state.issue_reference.get('url')}",
                    "next_suggested_step": "list_active_interviews",
                }
            payload = build_issue_payload(
                state,
                self.settings.github_owner,
                self.settings.default_repository,
                labels=labels,
                assignees=assignees,
                require_complete=True,
            )
        except InterviewError as e:
            return self._failure(e, suggestion="Complete the interview before creating the issue", next_step="answer_interview")

        try:
            with log_operation("create_issue", interview_id=interview_id, repository=payload.repository):
                reference = self.backend.create_issue(payload)
        except BackendError as e:
            e.interview_id = interview_id
            log_error_with_context(e, {"operation": "create_issue", "interview_id": interview_id})
            return self._failure(
                e,
                suggestion="The interview is preserved; retry create_issue once the backend is reachable",
                next_step="create_issue",
                payload=payload.to_dict(),
                retryable=True,
            )

        recorded = True
        try:
            self.engine.attach_issue_reference(interview_id, reference.to_dict())
        except InterviewError as e:
            recorded = False
            logger.warning(f"Issue {reference.url} created but not recorded on interview '{interview_id}': {e}")
            log_error_with_context(e, {"operation": "attach_issue_reference", "interview_id": interview_id})

        log_issue_created(interview_id, reference.repository, reference.url, issue_id=reference.id)
        result = {
            "interview_id": interview_id,
            "issue": reference.to_dict(),
            "payload": payload.to_dict(),
            "recorded": recorded,
            "message": f"Created issue {reference.repository}#{reference.id}",
            "next_suggested_step": "start_interview",
            "workflow_tip": "Start another interview or capture a thought for later",
        }
        if not recorded:
            result["warning"] = (
                f"Issue {reference.url} exists but the interview could not be updated; "
                "do not call create_issue again for this interview"
            )
            result["next_suggested_step"] = "get_interview"
        return result

    def cleanup_interviews(self, retention_days: Optional[float] = None) -> Dict[str, Any]:
        retention = self.settings.retention if retention_days is None else timedelta(days=float(retention_days))
        try:
            removed = self.store.cleanup(retention)
        except InterviewError as e:
            return self._failure(e, suggestion="Check the interview storage directory", next_step="interview_stats")
        days = retention.total_seconds() / 86400
        return {
            "removed": removed,
            "retention_days": days,
            "message": f"Removed {removed} completed interviews older than {days:g} days",
            "next_suggested_step": "interview_stats",
        }

    def interview_stats(self) -> Dict[str, Any]:
        stats = self.store.stats()
        stats["retention_days"] = self.settings.retention_days
        stats["captured_thoughts"] = len(self.thoughts.list_thoughts())
        return stats

    # ------------------------------------------------------------------
    # Thought analysis
    # ------------------------------------------------------------------

    def classify_thought(
        self,
        text: str,
        tags: Optional[Sequence[str]] = None,
        context: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Category, urgency and content signals; no snapshot is fetched."""
        tags = _tags(tags)
        analyzer = self.analyzer
        category = analyzer.classify_category(text, tags)
        urgency = analyzer.estimate_urgency(text)
        repositories = analyzer.infer_repositories(f"{text} {context or ''}")
        return {
            "category": category,
            "urgency": urgency,
            "suggested_priority": analyzer.suggest_priority(urgency),
            "suggested_template": analyzer.map_category_to_template(category, len(repositories) > 1),
            "classification": analyzer.classify_with_confidence(text, tags, context),
            "analysis": analyzer.analyze_thought_content(text, tags, context).to_dict(),
            "repositories": repositories,
            "next_suggested_step": "evaluate_thought",
        }

    def find_related_issues(
        self,
        text: str,
        tags: Optional[Sequence[str]] = None,
        context: Optional[str] = None,
    ) -> Dict[str, Any]:
        related = self.analyzer.find_related_issues(text, _tags(tags), context=context)
        return {
            "related_issues": [candidate.to_dict() for candidate in related],
            "count": len(related),
            "next_suggested_step": "recommend_action" if related else "capture_thought",
        }

    @log_performance("workflow_evaluate_thought")
    def evaluate_thought(
        self,
        text: str,
        tags: Optional[Sequence[str]] = None,
        context: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Score a thought against a fresh project snapshot."""
        tags = _tags(tags)
        snapshot = self.registry.build_snapshot()
        evaluation = self.analyzer.analyze_against_project_state(text, tags, snapshot, context)
        result = evaluation.to_dict()
        result.update({
            "analysis": self.analyzer.analyze_thought_content(text, tags, context).to_dict(),
            "snapshot": snapshot.to_dict(),
            "next_suggested_step": "start_interview" if evaluation.should_suggest_issue else "capture_thought",
            "workflow_tip": (
                "This looks worth an issue; start an interview with the thought as input"
                if evaluation.should_suggest_issue
                else "Capture the thought for later triage"
            ),
        })
        return result

    def recommend_action(
        self,
        text: str,
        tags: Optional[Sequence[str]] = None,
        context: Optional[str] = None,
    ) -> Dict[str, Any]:
        recommendation = self.analyzer.recommend_action(text, _tags(tags), context=context)
        result = recommendation.to_dict()
        next_steps = {
            "capture_only": "capture_thought",
            "add_to_existing": "find_related_issues",
            "schedule_discussion": "capture_thought",
        }
        result["next_suggested_step"] = next_steps.get(recommendation.action, "start_interview")
        return result

    @log_performance("workflow_capture_thought")
    def capture_thought(
        self,
        content: str,
        tags: Optional[Sequence[str]] = None,
        context: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Store a thought with its category, urgency and evaluation."""
        if not content or not content.strip():
            return {
                "error": "Thought content cannot be empty",
                "error_type": "ValidationError",
                "interview_id": None,
                "next_suggested_step": "capture_thought",
            }
        tags = _tags(tags)
        evaluation = self.analyzer.analyze_against_project_state(content, tags, context=context)
        thought = CapturedThought(
            id=f"thought-{uuid.uuid4().hex[:12]}",
            content=content.strip(),
            tags=tags,
            category=self.analyzer.classify_category(content, tags),
            urgency=self.analyzer.estimate_urgency(content),
            evaluation=evaluation.to_dict(),
        )
        try:
            self.thoughts.capture(thought)
        except InterviewError as e:
            return self._failure(e, suggestion="Check the workspace storage directory", next_step="capture_thought")

        log_thought_captured(thought.id, thought.category, urgency=thought.urgency)
        return {
            "thought": thought.to_dict(),
            "message": f"Captured thought {thought.id} as {thought.category}",
            "next_suggested_step": "start_interview" if evaluation.should_suggest_issue else "list_thoughts",
            "workflow_tip": (
                f"Suggested as a {evaluation.suggested_priority}-priority {evaluation.suggested_template} issue"
                if evaluation.should_suggest_issue
                else evaluation.reasoning
            ),
        }

    def list_thoughts(self, category: Optional[str] = None, limit: Optional[int] = None) -> Dict[str, Any]:
        try:
            thoughts = self.thoughts.list_thoughts(category, limit)
        except InterviewError as e:
            return self._failure(e, suggestion="Check the workspace storage directory", next_step="capture_thought")
        return {
            "thoughts": [thought.to_dict() for thought in thoughts],
            "count": len(thoughts),
        }

    # ------------------------------------------------------------------
    # Tool-invocation gateway
    # ------------------------------------------------------------------

    def invoke(self, tool_name: str, args: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Dispatch a named tool call with camelCase or snake_case arguments."""
        method_name = TOOLS.get(tool_name)
        if method_name is None:
            return {
                "error": f"Unknown tool '{tool_name}'",
                "error_type": "UnknownTool",
                "interview_id": None,
                "available_tools": sorted(TOOLS),
            }

        method = getattr(self, method_name)
        kwargs = {_snake_case(key): value for key, value in (args or {}).items()}
        try:
            inspect.signature(method).bind(**kwargs)
        except TypeError as e:
            return {
                "error": f"Invalid arguments for '{tool_name}': {e}",
                "error_type": "InvalidArguments",
                "interview_id": kwargs.get("interview_id"),
            }

        try:
            return method(**kwargs)
        except InterviewError as e:
            logger.warning(f"Tool '{tool_name}' failed: {e}")
            return e.to_dict()
