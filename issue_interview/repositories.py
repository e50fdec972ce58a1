"""Known repositories and the project snapshot built from their open issues."""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterable, List, Optional, Sequence, Set

from .heuristics import DEFAULT_RULES, HeuristicRules, extract_keywords
from .interview_logging import log_performance
from .models import OpenIssue, ProjectSnapshot

logger = logging.getLogger("issue_interview.repositories")

FetchIssues = Callable[[str], List[OpenIssue]]


def repository_tokens(names: Iterable[str]) -> Set[str]:
    """Lower-cased name fragments, split on anything that is not a letter or digit."""
    tokens: Set[str] = set()
    for name in names:
        tokens.update(token for token in re.split(r"[^a-z0-9]+", name.lower()) if token)
    return tokens


class RepositoryRegistry:
    """Explicit list of known repositories plus a way to read their open issues."""

    def __init__(
        self,
        repositories: Sequence[str],
        fetch_issues: Optional[FetchIssues] = None,
        default_repository: Optional[str] = None,
        rules: HeuristicRules = DEFAULT_RULES,
    ):
        self.repositories = tuple(repositories)
        self.fetch_issues = fetch_issues
        self.default_repository = default_repository or (self.repositories[0] if self.repositories else None)
        self.rules = rules

    def __contains__(self, repository: object) -> bool:
        return repository in self.repositories

    @log_performance("build_snapshot")
    def build_snapshot(self) -> ProjectSnapshot:
        """Fetch open issues once per repository and derive the snapshot sets.

        A repository whose fetch fails is skipped and noted in
        ``fetch_errors``; it is then neither underserved nor overloaded.
        """
        snapshot = ProjectSnapshot()
        if self.fetch_issues is None:
            logger.debug("No issue source configured; using an empty snapshot")
            return snapshot

        markers = self.rules.priority_area_markers
        for repository in self.repositories:
            try:
                issues = list(self.fetch_issues(repository))
            except Exception as e:
                logger.warning(f"Could not fetch open issues for {repository}: {e}")
                snapshot.fetch_errors[repository] = str(e)
                continue

            snapshot.open_issues.extend(issues)
            for issue in issues:
                title = issue.title.lower()
                if any(marker in title for marker in markers):
                    snapshot.priority_areas.extend(extract_keywords(issue.title, self.rules))

            if len(issues) > self.rules.overloaded_issue_count:
                snapshot.overloaded_repositories.append(repository)
            if len(issues) < self.rules.underserved_issue_count:
                snapshot.underserved_repositories.append(repository)

        logger.info(
            f"Snapshot built: {len(snapshot.open_issues)} open issues across "
            f"{len(self.repositories) - len(snapshot.fetch_errors)} repositories"
        )
        return snapshot
