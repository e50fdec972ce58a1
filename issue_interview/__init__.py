"""Issue interview MCP server - interview engine and heuristic prioritization package."""

# No imports at package level to avoid circular import issues
# Import modules directly where needed

__all__ = [
    "InterviewWorkflow",
    "InterviewEngine",
    "InterviewStore",
    "HeuristicAnalyzer",
    "QuestionCatalog",
    "RepositoryRegistry",
    "GitHubIssueBackend",
    "Settings",
]
