"""Issue backend adapters.

The workflow only depends on the :class:`IssueBackend` protocol;
:class:`GitHubIssueBackend` implements it over the GitHub REST API.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol

import requests

from .errors import BackendError
from .models import IssuePayload, IssueReference, OpenIssue

logger = logging.getLogger("issue_interview.backend")

BODY_EXCERPT_LENGTH = 500


class IssueBackend(Protocol):
    """External system of record for issues."""

    def create_issue(self, payload: IssuePayload) -> IssueReference:
        ...

    def list_open_issues(self, repository: str) -> List[OpenIssue]:
        ...


class GitHubIssueBackend:
    """REST client for creating and listing GitHub issues."""

    def __init__(
        self,
        owner: str,
        token: Optional[str] = None,
        api_url: str = "https://api.github.com",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.owner = owner
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, repository: str, **kwargs: Any) -> Any:
        url = f"{self.api_url}{path}"
        try:
            resp = self.session.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
        except requests.Timeout as e:
            raise BackendError(
                f"GitHub request to {repository} timed out after {self.timeout}s", repository=repository
            ) from e
        except requests.RequestException as e:
            raise BackendError(f"GitHub request to {repository} failed: {e}", repository=repository) from e

        if resp.status_code >= 400:
            message = resp.text
            try:
                message = resp.json().get("message", message)
            except ValueError:
                pass
            logger.warning(f"GitHub {method} {path} returned {resp.status_code}: {message}")
            raise BackendError(
                f"GitHub error {resp.status_code} for {repository}: {message}",
                repository=repository,
                status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as e:
            raise BackendError(
                f"GitHub returned a non-JSON response for {repository}",
                repository=repository,
                status_code=resp.status_code,
            ) from e

    def create_issue(self, payload: IssuePayload) -> IssueReference:
        body: Dict[str, Any] = {
            "title": payload.title,
            "body": payload.body,
            "labels": list(payload.labels),
        }
        if payload.assignees is not None:
            body["assignees"] = list(payload.assignees)

        owner = payload.owner or self.owner
        data = self._request("POST", f"/repos/{owner}/{payload.repository}/issues", payload.repository, json=body)
        reference = IssueReference(
            id=str(data.get("number", data.get("id", ""))),
            url=data.get("html_url") or data.get("url", ""),
            repository=payload.repository,
        )
        logger.info(f"Created issue {payload.repository}#{reference.id}")
        return reference

    def list_open_issues(self, repository: str) -> List[OpenIssue]:
        """Open issues of one repository; pull requests are left out."""
        data = self._request(
            "GET",
            f"/repos/{self.owner}/{repository}/issues",
            repository,
            params={"state": "open", "per_page": 100},
        )
        issues: List[OpenIssue] = []
        for item in data:
            if "pull_request" in item:
                continue
            issues.append(OpenIssue(
                repository=repository,
                id=str(item.get("number", item.get("id", ""))),
                title=item.get("title") or "",
                body_excerpt=(item.get("body") or "")[:BODY_EXCERPT_LENGTH],
                url=item.get("html_url"),
            ))
        return issues
