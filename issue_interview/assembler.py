"""Turn interview answers into an issue payload."""

from __future__ import annotations

from typing import Iterable, List, Optional

from .catalog import ISSUE_TYPE_FOLLOW_UPS
from .errors import ValidationError
from .models import InterviewState, IssuePayload

FALLBACK_TITLE = "Untitled Task"
NO_DESCRIPTION = "No description provided."
BREAKING_CHANGE_NOTICE = "This change will affect other services and requires coordinated deployment."

TYPE_LABELS = {
    "feature": "type: feature",
    "bug-fix": "type: bug",
    "protocol-change": "type: protocol-change",
    "cross-repo": "scope: cross-repo",
    "general": "type: task",
}
AFFIRMATIVE = {"yes", "y", "true"}
FOLLOW_UP_IDS = frozenset(qid for spawned in ISSUE_TYPE_FOLLOW_UPS.values() for qid in spawned)


def _issue_type(state: InterviewState) -> str:
    return (state.answer_text("issue_type") or state.suggested_issue_type).lower()


def _priority(state: InterviewState) -> str:
    return state.answer_text("priority") or state.suggested_priority


def _follow_up_answer(state: InterviewState, question_id: str) -> Optional[str]:
    """A follow-up answer, ignored once the issue type no longer spawns it."""
    if question_id in FOLLOW_UP_IDS and question_id not in ISSUE_TYPE_FOLLOW_UPS.get(_issue_type(state), ()):
        return None
    return state.answer_text(question_id)


def is_breaking_change(state: InterviewState) -> bool:
    answer = _follow_up_answer(state, "breaking_change")
    return answer is not None and answer.lower() in AFFIRMATIVE


def format_issue_body(state: InterviewState) -> str:
    """Markdown body: answered sections in fixed order, then a metadata footer."""
    sections = [f"## Description\n\n{state.answer_text('description') or NO_DESCRIPTION}\n\n"]

    for question_id, heading in (
        ("acceptance_criteria", "Acceptance Criteria"),
        ("technical_notes", "Technical Notes"),
        ("affected_repos", "Affected Repositories"),
    ):
        answer = _follow_up_answer(state, question_id)
        if answer:
            sections.append(f"## {heading}\n\n{answer}\n\n")

    if is_breaking_change(state):
        sections.append(f"## ⚠️ Breaking Change\n\n{BREAKING_CHANGE_NOTICE}\n\n")

    sections.append(
        "## Metadata\n\n"
        f"- **Type**: {_issue_type(state)}\n"
        f"- **Category**: {state.suggested_category}\n"
        f"- **Priority**: {_priority(state)}\n"
        f"- **Created from**: {state.original_input}\n"
        f"- **Interview ID**: {state.id}\n"
    )
    return "".join(sections)


def generate_labels(state: InterviewState, extra: Optional[Iterable[str]] = None) -> List[str]:
    """Priority, type, breaking-change and review labels, then ``extra``; no duplicates."""
    labels: List[str] = [f"priority: {_priority(state).lower()}"]

    type_label = TYPE_LABELS.get(_issue_type(state))
    if type_label:
        labels.append(type_label)
    if is_breaking_change(state):
        labels.append("type: breaking-change")
    if state.answer_text("technical_notes"):
        labels.append("needs-technical-review")
    labels.extend(label.strip() for label in (extra or []) if label and label.strip())

    unique: List[str] = []
    for label in labels:
        if label not in unique:
            unique.append(label)
    return unique


def build_issue_payload(
    state: InterviewState,
    owner: str,
    default_repository: str,
    labels: Optional[Iterable[str]] = None,
    assignees: Optional[Iterable[str]] = None,
    *,
    require_complete: bool = False,
) -> IssuePayload:
    """Assemble the payload for the issue backend.

    Raises :class:`ValidationError` when neither a title nor a description
    was given, or when ``require_complete`` is set and questions remain.
    """
    problems: List[str] = []
    if require_complete and not state.complete:
        problems.append(f"interview is not complete (next question: '{state.current_question_id}')")
    title = state.answer_text("title")
    if not title and not state.answer_text("description"):
        problems.append("neither a title nor a description was provided")
    if problems:
        raise ValidationError(
            f"Interview '{state.id}' cannot be turned into an issue: {'; '.join(problems)}",
            interview_id=state.id,
            problems=problems,
        )

    return IssuePayload(
        owner=owner,
        repository=state.answer_text("repository") or default_repository,
        title=title or FALLBACK_TITLE,
        body=format_issue_body(state),
        labels=generate_labels(state, labels),
        assignees=list(assignees) if assignees is not None else None,
    )
