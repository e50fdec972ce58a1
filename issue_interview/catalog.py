"""Static interview question catalog.

Follow-up questions are declared alongside the main sequence and
referenced by id, so the whole question graph can be enumerated.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence, Tuple

from .models import InterviewQuestion

ISSUE_TYPES = ("feature", "bug-fix", "protocol-change", "cross-repo", "general")
PRIORITIES = ("High", "Medium", "Low")

# issue type -> follow-up question ids it spawns
ISSUE_TYPE_FOLLOW_UPS: Dict[str, Tuple[str, ...]] = {
    "protocol-change": ("breaking_change",),
    "cross-repo": ("affected_repos",),
}


def build_follow_up_questions(repositories: Sequence[str]) -> Tuple[InterviewQuestion, ...]:
    return (
        InterviewQuestion(
            id="breaking_change",
            prompt="Is this a breaking change that affects other services?",
            kind="single-choice",
            choices=("yes", "no"),
        ),
        InterviewQuestion(
            id="affected_repos",
            prompt="Which repositories will be affected? (comma-separated)",
            kind="multi-choice",
            choices=tuple(repositories),
        ),
    )


def build_catalog(repositories: Sequence[str]) -> Tuple[InterviewQuestion, ...]:
    """Ordered main question sequence for the given known repositories."""
    return (
        InterviewQuestion(
            id="title",
            prompt="What is the title of this task? (Be concise and descriptive)",
        ),
        InterviewQuestion(
            id="description",
            prompt="Describe what needs to be done in detail:",
        ),
        InterviewQuestion(
            id="issue_type",
            prompt="What type of work is this?",
            kind="single-choice",
            choices=ISSUE_TYPES,
            follow_up_rules=tuple(ISSUE_TYPE_FOLLOW_UPS.items()),
        ),
        InterviewQuestion(
            id="priority",
            prompt="What is the priority of this task?",
            kind="single-choice",
            choices=PRIORITIES,
        ),
        InterviewQuestion(
            id="repository",
            prompt=f"Which repository is this for? Available: {', '.join(repositories)}",
            kind="single-choice",
            choices=tuple(repositories),
        ),
        InterviewQuestion(
            id="acceptance_criteria",
            prompt='What are the acceptance criteria? (What defines "done" for this task?)',
        ),
        InterviewQuestion(
            id="technical_notes",
            prompt="Any technical considerations, dependencies, or implementation notes?",
            required=False,
        ),
    )


class QuestionCatalog:
    """Lookup over the main questions and their declared follow-ups."""

    def __init__(
        self,
        questions: Iterable[InterviewQuestion],
        follow_ups: Iterable[InterviewQuestion] = (),
    ):
        self.questions: Tuple[InterviewQuestion, ...] = tuple(questions)
        self.follow_up_questions: Tuple[InterviewQuestion, ...] = tuple(follow_ups)
        self._by_id: Dict[str, InterviewQuestion] = {}
        for question in self.questions + self.follow_up_questions:
            self._by_id.setdefault(question.id, question)

    @classmethod
    def for_repositories(cls, repositories: Sequence[str]) -> "QuestionCatalog":
        return cls(build_catalog(repositories), build_follow_up_questions(repositories))

    def get(self, question_id: str) -> InterviewQuestion:
        try:
            return self._by_id[question_id]
        except KeyError:
            raise KeyError(f"Unknown question id: {question_id}") from None

    def __contains__(self, question_id: object) -> bool:
        return question_id in self._by_id

    def initial_sequence(self) -> List[str]:
        return [question.id for question in self.questions]

    def all_question_ids(self) -> List[str]:
        return list(self._by_id)

    def validate(self) -> List[str]:
        """Check the question graph and return any issues."""
        issues: List[str] = []
        seen: set[str] = set()
        for question in self.questions + self.follow_up_questions:
            if question.id in seen:
                issues.append(f"Duplicate question id: {question.id}")
            seen.add(question.id)
            issues.extend(question.validate())
            for follow_up_id in question.follow_up_ids():
                if follow_up_id not in self._by_id:
                    issues.append(f"Question '{question.id}' references unknown follow-up '{follow_up_id}'")
        return issues
