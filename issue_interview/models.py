"""Data models for the issue interview workflow.

This module contains the core data structures used throughout the system:
interview questions and answers, persisted interview state, the
ephemeral project snapshot used for scoring, analyzer results, and the
issue payload handed to the issue backend.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

QUESTION_KINDS = ("free-text", "single-choice", "multi-choice")


def utc_timestamp() -> str:
    """Current UTC time as an ISO-8601 string with a trailing Z."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp written by :func:`utc_timestamp`."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ---------------------------------------------------------------------------
# Answers
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class TextAnswer:
    """Free-text answer."""

    value: str
    kind = "text"

    def as_text(self) -> str:
        return self.value

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "value": self.value}


@dataclass(slots=True, frozen=True)
class ChoiceAnswer:
    """Single selected choice."""

    value: str
    kind = "choice"

    def as_text(self) -> str:
        return self.value

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "value": self.value}


@dataclass(slots=True, frozen=True)
class MultiChoiceAnswer:
    """Several selected choices, order preserved."""

    values: Tuple[str, ...]
    kind = "multi-choice"

    def as_text(self) -> str:
        return ", ".join(self.values)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "values": list(self.values)}


AnswerValue = Union[TextAnswer, ChoiceAnswer, MultiChoiceAnswer]


def answer_from_dict(data: Any) -> AnswerValue:
    """Decode a persisted answer; bare strings are read as free text."""
    if isinstance(data, str):
        return TextAnswer(data)
    if isinstance(data, list):
        return MultiChoiceAnswer(tuple(str(item) for item in data))
    if not isinstance(data, dict):
        raise ValueError(f"Unreadable answer: {data!r}")
    kind = data.get("kind", "text")
    if kind == "choice":
        return ChoiceAnswer(str(data["value"]))
    if kind == "multi-choice":
        return MultiChoiceAnswer(tuple(str(item) for item in data.get("values", [])))
    return TextAnswer(str(data.get("value", "")))


def coerce_answer(raw: Any, question_kind: str) -> AnswerValue:
    """Wrap caller input into the answer variant matching the question kind.

    Choice validation is left to the caller; anything is accepted.
    """
    if isinstance(raw, (TextAnswer, ChoiceAnswer, MultiChoiceAnswer)):
        return raw
    if question_kind == "multi-choice":
        if isinstance(raw, (list, tuple)):
            items = [str(item).strip() for item in raw]
        else:
            items = [part.strip() for part in str(raw).split(",")]
        return MultiChoiceAnswer(tuple(item for item in items if item))
    if isinstance(raw, (list, tuple)):
        raw = ", ".join(str(item) for item in raw)
    text = "" if raw is None else str(raw).strip()
    if question_kind == "single-choice":
        return ChoiceAnswer(text)
    return TextAnswer(text)


# ---------------------------------------------------------------------------
# Questions and interview state
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class InterviewQuestion:
    """A catalog question with declarative follow-up rules.

    ``follow_up_rules`` maps a lower-cased answer value to the ids of the
    questions it spawns. Follow-up ids must be declared in the catalog.
    """

    id: str
    prompt: str
    kind: str = "free-text"
    choices: Tuple[str, ...] = ()
    required: bool = True
    follow_up_rules: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()

    def follow_ups(self, answer: AnswerValue) -> List[str]:
        """Ids of the questions spawned by ``answer``; same answer, same result."""
        if isinstance(answer, MultiChoiceAnswer):
            selected = [value.lower() for value in answer.values]
        else:
            selected = [answer.as_text().strip().lower()]
        spawned: List[str] = []
        for trigger, question_ids in self.follow_up_rules:
            if trigger in selected:
                for question_id in question_ids:
                    if question_id not in spawned:
                        spawned.append(question_id)
        return spawned

    def follow_up_ids(self) -> List[str]:
        """Every question id this question can spawn."""
        ids: List[str] = []
        for _, question_ids in self.follow_up_rules:
            ids.extend(qid for qid in question_ids if qid not in ids)
        return ids

    def validate(self) -> List[str]:
        """Validate the question definition and return any issues."""
        issues = []
        if not self.id:
            issues.append("Question id is required")
        if not self.prompt:
            issues.append(f"Question '{self.id}' needs a prompt")
        if self.kind not in QUESTION_KINDS:
            issues.append(f"Question '{self.id}' has invalid kind: {self.kind}")
        if self.kind != "free-text" and not self.choices:
            issues.append(f"Question '{self.id}' is {self.kind} but has no choices")
        return issues

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "prompt": self.prompt,
            "kind": self.kind,
            "choices": list(self.choices),
            "required": self.required,
        }


@dataclass(slots=True)
class InterviewState:
    """Durable state of one in-progress or completed interview."""

    id: str
    original_input: str
    question_sequence: List[str]
    answers: Dict[str, AnswerValue] = field(default_factory=dict)
    question_cursor: int = 0
    complete: bool = False
    suggested_category: str = "feature-idea"
    suggested_priority: str = "Medium"
    suggested_issue_type: str = "general"
    suggested_urgency: str = "planned"
    created_at: str = field(default_factory=utc_timestamp)
    updated_at: str = field(default_factory=utc_timestamp)
    completed_at: Optional[str] = None
    issue_reference: Optional[Dict[str, Any]] = None

    @property
    def current_question_id(self) -> Optional[str]:
        """Id of the next question to ask, or None once complete."""
        if self.complete or self.question_cursor >= len(self.question_sequence):
            return None
        return self.question_sequence[self.question_cursor]

    def answer_text(self, question_id: str) -> Optional[str]:
        """Answer as plain text, or None when unanswered or blank."""
        answer = self.answers.get(question_id)
        if answer is None:
            return None
        text = answer.as_text().strip()
        return text or None

    def touch(self) -> None:
        self.updated_at = utc_timestamp()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "original_input": self.original_input,
            "question_sequence": list(self.question_sequence),
            "answers": {qid: answer.to_dict() for qid, answer in self.answers.items()},
            "question_cursor": self.question_cursor,
            "complete": self.complete,
            "suggested_category": self.suggested_category,
            "suggested_priority": self.suggested_priority,
            "suggested_issue_type": self.suggested_issue_type,
            "suggested_urgency": self.suggested_urgency,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "completed_at": self.completed_at,
            "issue_reference": self.issue_reference,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InterviewState":
        """Create from dictionary representation."""
        answers = data.get("answers", {})
        if not isinstance(answers, dict):
            raise ValueError("answers must be a mapping of question id to answer")
        return cls(
            id=data["id"],
            original_input=data.get("original_input", ""),
            question_sequence=list(data["question_sequence"]),
            answers={
                qid: answer_from_dict(value) for qid, value in answers.items()
            },
            question_cursor=data.get("question_cursor", 0),
            complete=data.get("complete", False),
            suggested_category=data.get("suggested_category", "feature-idea"),
            suggested_priority=data.get("suggested_priority", "Medium"),
            suggested_issue_type=data.get("suggested_issue_type", "general"),
            suggested_urgency=data.get("suggested_urgency", "planned"),
            created_at=data.get("created_at", utc_timestamp()),
            updated_at=data.get("updated_at", utc_timestamp()),
            completed_at=data.get("completed_at"),
            issue_reference=data.get("issue_reference"),
        )


# ---------------------------------------------------------------------------
# Project snapshot and analyzer results
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class OpenIssue:
    """An open issue as seen by the analyzer."""

    repository: str
    id: str
    title: str
    body_excerpt: str = ""
    url: Optional[str] = None

    @property
    def text(self) -> str:
        return f"{self.title} {self.body_excerpt}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "repository": self.repository,
            "id": self.id,
            "title": self.title,
            "body_excerpt": self.body_excerpt,
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OpenIssue":
        return cls(
            repository=data["repository"],
            id=str(data["id"]),
            title=data.get("title", ""),
            body_excerpt=data.get("body_excerpt", ""),
            url=data.get("url"),
        )


@dataclass(slots=True)
class ProjectSnapshot:
    """Point-in-time read of open issues; rebuilt per analysis, never persisted."""

    open_issues: List[OpenIssue] = field(default_factory=list)
    priority_areas: List[str] = field(default_factory=list)
    underserved_repositories: List[str] = field(default_factory=list)
    overloaded_repositories: List[str] = field(default_factory=list)
    fetch_errors: Dict[str, str] = field(default_factory=dict)
    taken_at: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "open_issue_count": len(self.open_issues),
            "priority_areas": sorted(set(self.priority_areas)),
            "underserved_repositories": list(self.underserved_repositories),
            "overloaded_repositories": list(self.overloaded_repositories),
            "fetch_errors": dict(self.fetch_errors),
            "taken_at": self.taken_at,
        }


@dataclass(slots=True)
class ScoredCandidateIssue:
    """An open issue scored for similarity against a piece of text."""

    issue: OpenIssue
    similarity: int
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "issue": self.issue.to_dict(),
            "similarity": self.similarity,
            "reason": self.reason,
        }


@dataclass(slots=True)
class ThoughtAnalysis:
    """Content signals extracted from a thought."""

    keywords: List[str]
    has_urgency_indicators: bool
    has_implementation_details: bool
    has_architectural_implications: bool
    complexity: str
    tech_mentions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keywords": list(self.keywords),
            "has_urgency_indicators": self.has_urgency_indicators,
            "has_implementation_details": self.has_implementation_details,
            "has_architectural_implications": self.has_architectural_implications,
            "complexity": self.complexity,
            "tech_mentions": list(self.tech_mentions),
        }


@dataclass(slots=True)
class ThoughtEvaluation:
    """Outcome of scoring a thought against the project snapshot."""

    should_suggest_issue: bool
    reasoning: str
    suggested_template: str
    suggested_priority: str
    category: str
    score: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "should_suggest_issue": self.should_suggest_issue,
            "reasoning": self.reasoning,
            "suggested_template": self.suggested_template,
            "suggested_priority": self.suggested_priority,
            "category": self.category,
            "score": self.score,
        }


@dataclass(slots=True)
class ActionRecommendation:
    """What to do with a thought: capture it, merge it, or open an issue."""

    action: str
    complexity: str
    reasoning: str
    evaluation: ThoughtEvaluation
    related_issues: List[ScoredCandidateIssue] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "complexity": self.complexity,
            "reasoning": self.reasoning,
            "evaluation": self.evaluation.to_dict(),
            "related_issues": [candidate.to_dict() for candidate in self.related_issues],
        }


# ---------------------------------------------------------------------------
# Issue backend payloads
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class IssuePayload:
    """Closed payload for the issue backend."""

    owner: str
    repository: str
    title: str
    body: str
    labels: List[str] = field(default_factory=list)
    assignees: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "repository": self.repository,
            "title": self.title,
            "body": self.body,
            "labels": list(self.labels),
            "assignees": list(self.assignees) if self.assignees is not None else None,
        }


@dataclass(slots=True)
class IssueReference:
    """Reference to an issue created by the backend."""

    id: str
    url: str
    repository: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "url": self.url, "repository": self.repository}


@dataclass(slots=True)
class CapturedThought:
    """A thought captured for later triage."""

    id: str
    content: str
    tags: List[str] = field(default_factory=list)
    category: str = "feature-idea"
    urgency: str = "planned"
    evaluation: Optional[Dict[str, Any]] = None
    created_at: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "tags": list(self.tags),
            "category": self.category,
            "urgency": self.urgency,
            "evaluation": self.evaluation,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CapturedThought":
        return cls(
            id=data["id"],
            content=data["content"],
            tags=data.get("tags", []),
            category=data.get("category", "feature-idea"),
            urgency=data.get("urgency", "planned"),
            evaluation=data.get("evaluation"),
            created_at=data.get("created_at", utc_timestamp()),
        )
