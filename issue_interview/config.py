"""Environment-driven settings for the issue interview server."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import List, Mapping, Optional, Tuple

ROOT_ENV = "ISSUE_INTERVIEW_ROOT"
STORAGE_DIR_ENV = "ISSUE_INTERVIEW_STORAGE_DIR"
DEFAULT_STORAGE_DIR = ".issue-interview"

DEFAULT_OWNER = "loqalabs"
DEFAULT_REPOSITORY = "loqa-hub"
KNOWN_REPOSITORIES = (
    "loqa",
    "loqa-hub",
    "loqa-commander",
    "loqa-relay",
    "loqa-proto",
    "loqa-skills",
    "www-loqalabs-com",
    "loqalabs-github-config",
)
DEFAULT_GITHUB_API_URL = "https://api.github.com"


@dataclass(slots=True)
class Settings:
    """Resolved configuration for one server process."""

    root: Path
    storage_dir_name: str = DEFAULT_STORAGE_DIR
    retention_days: float = 7.0
    lock_timeout: float = 0.5
    github_owner: str = DEFAULT_OWNER
    repositories: Tuple[str, ...] = KNOWN_REPOSITORIES
    default_repository: str = DEFAULT_REPOSITORY
    github_token: Optional[str] = None
    github_api_url: str = DEFAULT_GITHUB_API_URL
    http_timeout: float = 10.0
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    heuristics_file: Optional[Path] = None

    @property
    def storage_root(self) -> Path:
        return self.root / self.storage_dir_name

    @property
    def retention(self) -> timedelta:
        return timedelta(days=self.retention_days)


def _candidate_bases(start: Optional[Path] = None) -> List[Path]:
    cwd = (start or Path.cwd()).resolve()
    return [cwd, *cwd.parents]


def locate_workspace_root(marker: str = DEFAULT_STORAGE_DIR, start: Optional[Path] = None) -> Optional[Path]:
    """Nearest ancestor of ``start`` (default cwd) holding the marker directory."""
    for base in _candidate_bases(start):
        if (base / marker).is_dir():
            return base
    return None


def resolve_root(root: Optional[str], env: Mapping[str, str], marker: str) -> Path:
    if root:
        resolved = Path(root).expanduser().resolve()
        if not resolved.exists():
            raise ValueError(f"Provided root '{root}' does not exist.")
        return resolved

    env_root = env.get(ROOT_ENV)
    if env_root:
        env_path = Path(env_root).expanduser().resolve()
        if not env_path.exists():
            raise ValueError(
                f"Environment variable {ROOT_ENV} points to '{env_root}', which does not exist."
            )
        return env_path

    detected_root = locate_workspace_root(marker)
    if detected_root:
        return detected_root

    raise ValueError(
        "Unable to determine workspace root automatically. Provide the 'root' argument when calling the tool "
        f"or set the {ROOT_ENV} environment variable."
    )


def _number(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number, got '{raw}'") from None
    if value < 0:
        raise ValueError(f"Environment variable {name} must not be negative, got '{raw}'")
    return value


def _optional_path(env: Mapping[str, str], name: str) -> Optional[Path]:
    raw = env.get(name)
    return Path(raw).expanduser() if raw else None


def load_settings(root: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build :class:`Settings` from the ``root`` argument and environment variables."""
    env = os.environ if env is None else env
    storage_dir_name = env.get(STORAGE_DIR_ENV) or DEFAULT_STORAGE_DIR

    repositories = KNOWN_REPOSITORIES
    raw_repositories = env.get("ISSUE_INTERVIEW_REPOSITORIES")
    if raw_repositories:
        repositories = tuple(name.strip() for name in raw_repositories.split(",") if name.strip())

    default_repository = env.get("ISSUE_INTERVIEW_DEFAULT_REPOSITORY") or DEFAULT_REPOSITORY
    if default_repository not in repositories:
        repositories = repositories + (default_repository,)

    return Settings(
        root=resolve_root(root, env, storage_dir_name),
        storage_dir_name=storage_dir_name,
        retention_days=_number(env, "ISSUE_INTERVIEW_RETENTION_DAYS", 7.0),
        lock_timeout=_number(env, "ISSUE_INTERVIEW_LOCK_TIMEOUT", 0.5),
        github_owner=env.get("ISSUE_INTERVIEW_GITHUB_OWNER") or DEFAULT_OWNER,
        repositories=repositories,
        default_repository=default_repository,
        github_token=env.get("GITHUB_TOKEN") or None,
        github_api_url=env.get("ISSUE_INTERVIEW_GITHUB_API_URL") or DEFAULT_GITHUB_API_URL,
        http_timeout=_number(env, "ISSUE_INTERVIEW_HTTP_TIMEOUT", 10.0),
        log_level=(env.get("ISSUE_INTERVIEW_LOG_LEVEL") or "INFO").upper(),
        log_file=_optional_path(env, "ISSUE_INTERVIEW_LOG_FILE"),
        heuristics_file=_optional_path(env, "ISSUE_INTERVIEW_HEURISTICS_FILE"),
    )
