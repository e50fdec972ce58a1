"""Shared fixtures for the issue interview test suite."""

import pytest

from issue_interview.analyzer import HeuristicAnalyzer
from issue_interview.catalog import QuestionCatalog
from issue_interview.config import KNOWN_REPOSITORIES, Settings
from issue_interview.engine import InterviewEngine
from issue_interview.errors import BackendError
from issue_interview.models import IssueReference
from issue_interview.storage import InterviewStore


class FakeIssueBackend:
    """In-memory issue backend that records created payloads."""

    def __init__(self, issues=None, fail_create=False, failing_repositories=()):
        self.issues = dict(issues or {})
        self.fail_create = fail_create
        self.failing_repositories = set(failing_repositories)
        self.created = []
        self.list_calls = []

    def create_issue(self, payload):
        if self.fail_create:
            raise BackendError(
                f"GitHub error 502 for {payload.repository}: Bad Gateway",
                repository=payload.repository,
                status_code=502,
            )
        self.created.append(payload)
        number = str(len(self.created))
        return IssueReference(
            id=number,
            url=f"https://github.com/{payload.owner}/{payload.repository}/issues/{number}",
            repository=payload.repository,
        )

    def list_open_issues(self, repository):
        self.list_calls.append(repository)
        if repository in self.failing_repositories:
            raise BackendError(f"GitHub request to {repository} timed out", repository=repository)
        return list(self.issues.get(repository, []))


@pytest.fixture
def backend_factory():
    """Build fake backends with custom issues or failures."""
    return FakeIssueBackend


@pytest.fixture
def fake_backend():
    return FakeIssueBackend()


@pytest.fixture
def settings(tmp_path):
    return Settings(root=tmp_path, lock_timeout=0.1)


@pytest.fixture
def store(tmp_path):
    return InterviewStore(tmp_path, lock_timeout=0.1)


@pytest.fixture
def catalog():
    return QuestionCatalog.for_repositories(KNOWN_REPOSITORIES)


@pytest.fixture
def engine(store, catalog):
    return InterviewEngine(store, catalog, HeuristicAnalyzer())


@pytest.fixture
def protocol_change_answers():
    """Answers for a full protocol-change interview, in question order."""
    return [
        "Add streaming STT support",
        "Stream partial transcripts from the hub to clients.",
        "protocol-change",
        "yes",
        "High",
        "loqa-proto",
        "Clients receive partial transcripts within 200ms",
        "Requires a new gRPC stream in the proto definitions",
    ]
