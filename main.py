"""MCP server exposing interview-driven issue creation and thought triage tools."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from mcp.server.fastmcp import FastMCP

from issue_interview.config import load_settings
from issue_interview.interview_logging import setup_logging
from issue_interview.workflow import TOOLS, InterviewWorkflow

mcp = FastMCP("issue-interview")


def _workflow(root: Optional[str]) -> InterviewWorkflow:
    return InterviewWorkflow(load_settings(root))


def _workflow_optional(root: Optional[str]) -> Optional[InterviewWorkflow]:
    try:
        return _workflow(root)
    except ValueError:
        return None


@mcp.tool()
def start_interview(original_input: str = "", root: Optional[str] = None) -> Dict[str, Any]:
    """STEP 1: Start an interview that turns a rough idea into a complete issue.
    Short single-line input is offered back as the suggested title.
    Category and priority suggestions are derived from the input text."""

    return _workflow(root).start_interview(original_input)


@mcp.tool()
def answer_interview(
    interview_id: str,
    answer: Union[str, List[str]],
    question_id: Optional[str] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """STEP 2: Answer the current interview question and receive the next one.
    Pass question_id naming an earlier question to revise its answer.
    Repeat until the interview reports complete."""

    return _workflow(root).answer_interview(interview_id, answer, question_id)


@mcp.tool()
def get_interview(interview_id: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Return an interview's answers, current question and progress."""

    return _workflow(root).get_interview(interview_id)


@mcp.tool()
def list_active_interviews(root: Optional[str] = None) -> Dict[str, Any]:
    """List interviews that still have unanswered questions."""

    return _workflow(root).list_active_interviews()


@mcp.tool()
def preview_issue(
    interview_id: str,
    labels: Optional[List[str]] = None,
    assignees: Optional[List[str]] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """STEP 3: Show the title, body and labels the interview would produce."""

    return _workflow(root).preview_issue(interview_id, labels, assignees)


@mcp.tool()
def create_issue(
    interview_id: str,
    labels: Optional[List[str]] = None,
    assignees: Optional[List[str]] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """STEP 4 (FINAL): Create the GitHub issue for a completed interview.
    Prerequisites: the interview must be complete. A failed call can be retried;
    the interview is kept as it was."""

    return _workflow(root).create_issue(interview_id, labels, assignees)


@mcp.tool()
def cleanup_interviews(retention_days: Optional[float] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Remove completed interviews older than the retention horizon (default from settings)."""

    return _workflow(root).cleanup_interviews(retention_days)


@mcp.tool()
def interview_stats(root: Optional[str] = None) -> Dict[str, Any]:
    """Report counts of active and completed interviews and captured thoughts."""

    return _workflow(root).interview_stats()


@mcp.tool()
def classify_thought(
    text: str,
    tags: Optional[List[str]] = None,
    context: Optional[str] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Classify free text by category, urgency and likely repositories without fetching issues."""

    return _workflow(root).classify_thought(text, tags, context)


@mcp.tool()
def find_related_issues(
    text: str,
    tags: Optional[List[str]] = None,
    context: Optional[str] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Find open issues related to the text, most similar first."""

    return _workflow(root).find_related_issues(text, tags, context)


@mcp.tool()
def evaluate_thought(
    text: str,
    tags: Optional[List[str]] = None,
    context: Optional[str] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Score a thought against current open issues and say whether it deserves an issue."""

    return _workflow(root).evaluate_thought(text, tags, context)


@mcp.tool()
def recommend_action(
    text: str,
    tags: Optional[List[str]] = None,
    context: Optional[str] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Recommend capturing, merging into an existing issue, discussing, or opening an issue."""

    return _workflow(root).recommend_action(text, tags, context)


@mcp.tool()
def capture_thought(
    content: str,
    tags: Optional[List[str]] = None,
    context: Optional[str] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Capture a thought for later triage together with its evaluation."""

    return _workflow(root).capture_thought(content, tags, context)


@mcp.tool()
def list_thoughts(
    category: Optional[str] = None,
    limit: Optional[int] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """List captured thoughts, newest first."""

    return _workflow(root).list_thoughts(category, limit)


@mcp.tool()
def invoke_tool(tool_name: str, args: Optional[Dict[str, Any]] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Call any workflow operation by its dotted name, e.g. interview.start or analyzer.classify."""

    return _workflow(root).invoke(tool_name, args)


@mcp.resource("issue-interview://interviews")
def resource_interviews() -> str:
    workflow = _workflow_optional(None)
    if workflow is None:
        return "No workspace root detected. Launch tools with a 'root' argument or set ISSUE_INTERVIEW_ROOT."

    interviews = workflow.list_active_interviews()["interviews"]
    if not interviews:
        return "No active interviews."

    lines = ["Active Interviews"]
    for item in interviews:
        progress = item["progress"]
        lines.append("")
        lines.append(f"- {item['interview_id']}: {item['title'] or item['original_input'] or '(untitled)'}")
        lines.append(f"  Next question: {item['current_question_id']} ({progress['position']}/{progress['total']})")
        lines.append(f"  Updated: {item['updated_at']}")
    return "\n".join(lines)


@mcp.tool()
def get_workflow_guide() -> Dict[str, Any]:
    """Get the recommended order of tools for turning ideas into issues."""

    return {
        "workflow_steps": [
            {
                "step": 1,
                "tool": "start_interview",
                "description": "Start an interview from a rough idea or title",
                "purpose": "Seed category and priority suggestions",
            },
            {
                "step": 2,
                "tool": "answer_interview",
                "description": "Answer questions one at a time until complete",
                "purpose": "Collect everything the issue needs",
            },
            {
                "step": 3,
                "tool": "preview_issue",
                "description": "Review the assembled title, body and labels",
                "purpose": "Catch mistakes before anything is created",
            },
            {
                "step": 4,
                "tool": "create_issue",
                "description": "Create the issue in the target repository",
                "purpose": "Record the work in the tracker",
            },
        ],
        "triage_tools": ["classify_thought", "find_related_issues", "evaluate_thought", "recommend_action",
                         "capture_thought", "list_thoughts"],
        "gateway_tools": sorted(TOOLS),
        "tips": [
            "Interviews survive restarts; use list_active_interviews to resume",
            "Use recommend_action before starting an interview for a half-formed idea",
            "A failed create_issue can be retried without repeating the interview",
        ],
    }


if __name__ == "__main__":
    try:
        startup_settings = load_settings()
        setup_logging(startup_settings.log_level, startup_settings.log_file)
    except ValueError:
        setup_logging(logging.INFO)
    mcp.run(transport="stdio")
