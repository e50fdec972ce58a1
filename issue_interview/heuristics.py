"""Declarative rule tables for the heuristic analyzer.

All vocabularies, weights and thresholds used for categorization and
scoring live here so they can be audited, overridden from a JSON file,
and tested independently of the analyzer logic. The thresholds are
heuristic and tunable; the defaults reproduce the established behaviour.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Tuple

CATEGORIES = (
    "architecture",
    "bug-insight",
    "technical-debt",
    "optimization",
    "feature-idea",
    "process-improvement",
    "research-topic",
)


@dataclass(slots=True, frozen=True)
class SemanticDomain:
    """A group of terms whose shared presence signals related work."""

    domain: str
    terms: Tuple[str, ...]
    weight: int


@dataclass(slots=True, frozen=True)
class ProblemSolutionPair:
    problem: Tuple[str, ...]
    solution: Tuple[str, ...]


@dataclass(slots=True, frozen=True)
class HeuristicRules:
    """Every table and threshold the analyzer reads."""

    # Ordered: first matching category wins.
    category_keywords: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
        ("architecture", ("architecture", "system design", "microservice")),
        ("bug-insight", ("bug", "error", "issue", "crash", "fix", "broken", "fail")),
        ("technical-debt", ("debt", "refactor", "cleanup", "legacy")),
        ("optimization", ("performance", "optimize", "faster", "latency")),
        ("feature-idea", ("feature", "new", "add")),
        ("process-improvement", ("process", "workflow", "improve")),
        ("research-topic", ("research", "investigate", "explore")),
    )
    default_category: str = "feature-idea"

    # Ordered: first matching bucket wins, planned is the default.
    urgency_keywords: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
        ("immediate", ("urgent", "asap", "critical", "breaking")),
        ("next-sprint", ("soon", "next", "priority")),
        ("future", ("someday", "eventually", "maybe")),
    )
    default_urgency: str = "planned"

    urgency_indicators: Tuple[str, ...] = (
        "urgent", "critical", "asap", "immediately", "broken", "failing", "blocker", "breaking",
    )
    implementation_terms: Tuple[str, ...] = (
        "implement", "code", "develop", "build", "create", "add",
    )
    architecture_terms: Tuple[str, ...] = (
        "architecture", "design", "structure", "system", "refactor",
        "service", "microservice", "protocol", "grpc", "breaking change",
    )
    priority_area_markers: Tuple[str, ...] = ("critical", "urgent")

    # (terms, weight); >= high_complexity_score is high, >= medium_complexity_score medium.
    complexity_indicators: Tuple[Tuple[Tuple[str, ...], int], ...] = (
        (("system", "architecture", "refactor", "migration", "breaking"), 3),
        (("integration", "distributed", "scalability", "performance"), 2),
        (("api", "database", "protocol", "security", "auth"), 2),
        (("multiple", "cross", "service", "component", "module"), 1),
        (("new", "feature", "enhancement", "improvement"), 1),
    )
    high_complexity_score: int = 8
    medium_complexity_score: int = 4

    # Weighted term counts used by classify_with_confidence.
    category_confidence_terms: Tuple[Tuple[str, int, Tuple[str, ...]], ...] = (
        ("architecture", 15, (
            "architecture", "system design", "microservice", "service", "api design",
            "protocol", "infrastructure", "scalability", "distributed",
        )),
        ("feature-idea", 12, (
            "feature", "new", "add", "implement", "create", "enhancement",
            "functionality", "capability", "improvement",
        )),
        ("technical-debt", 13, (
            "debt", "refactor", "cleanup", "legacy", "outdated", "maintain",
            "improve", "simplify", "modernize",
        )),
        ("bug-insight", 14, (
            "bug", "error", "issue", "problem", "fail", "broken", "fix",
            "crash", "incorrect", "wrong",
        )),
        ("optimization", 11, (
            "performance", "optimize", "faster", "speed", "efficiency", "cache",
            "memory", "cpu", "latency", "throughput",
        )),
        ("process-improvement", 10, (
            "process", "workflow", "automation", "ci/cd", "testing", "deployment",
            "documentation", "standards", "guidelines",
        )),
        ("research-topic", 9, (
            "research", "investigate", "explore", "study", "analyze", "experiment",
            "proof of concept", "poc", "evaluation",
        )),
    )
    explicit_tag_bonus: int = 20

    semantic_domains: Tuple[SemanticDomain, ...] = (
        SemanticDomain("audio processing", ("stt", "speech", "voice", "audio", "transcrib", "recogni"), 25),
        SemanticDomain("speech synthesis", ("tts", "synthesiz", "speak", "voice output"), 25),
        SemanticDomain("AI/LLM", ("llm", "model", "ai", "intelligence", "prompt", "response"), 20),
        SemanticDomain("architecture", ("service", "api", "grpc", "microservice", "architecture"), 15),
        SemanticDomain("hub service", ("hub", "central", "orchestrat", "pipeline"), 20),
        SemanticDomain("UI/frontend", ("ui", "interface", "dashboard", "commander", "vue", "frontend"), 20),
        SemanticDomain("skills system", ("skill", "plugin", "integration", "homeassistant", "command"), 20),
        SemanticDomain("performance", ("performance", "optim", "speed", "efficiency", "accuracy", "quality"), 15),
        SemanticDomain("reliability", ("error", "retry", "failur", "reliabil", "robust"), 20),
        SemanticDomain("infrastructure", ("docker", "deploy", "config", "setup", "infra"), 11),
    )

    # Canonical component -> synonyms; the issue's repository name also counts.
    component_groups: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
        ("hub", ("stt", "tts", "llm", "central", "service", "api", "grpc")),
        ("commander", ("ui", "dashboard", "frontend", "vue", "interface")),
        ("relay", ("audio", "capture", "client", "device")),
        ("skills", ("skill", "plugin", "integration", "command")),
        ("proto", ("protocol", "grpc", "definition", "api")),
    )

    problem_solution_pairs: Tuple[ProblemSolutionPair, ...] = (
        ProblemSolutionPair(("accuracy", "error", "wrong", "incorrect"), ("improve", "fix", "enhance", "optim")),
        ProblemSolutionPair(("slow", "performance", "delay"), ("speed", "faster", "optim", "cache")),
        ProblemSolutionPair(("fail", "crash", "break"), ("retry", "robust", "handle", "recover")),
    )

    tech_terms: Tuple[str, ...] = (
        "go", "golang", "vue", "vuejs", "javascript", "typescript", "python", "docker",
        "kubernetes", "grpc", "protobuf", "sqlite", "postgresql", "redis", "nats", "ollama",
        "stt", "tts", "llm", "microservice", "api", "rest", "graphql", "websocket",
        "github", "terraform", "react", "node", "rust",
    )

    stop_words: Tuple[str, ...] = (
        "the", "and", "but", "for", "with", "are", "was", "were", "been", "being",
        "have", "has", "had", "does", "did", "will", "would", "should", "could", "can",
        "may", "might", "must", "shall", "this", "that", "these", "those", "you", "she",
        "they", "him", "her", "them",
    )

    suggest_issue_threshold: int = 2
    related_similarity_threshold: int = 30
    fallback_similarity_threshold: int = 10
    tag_match_weight: int = 15
    component_weight: int = 15
    problem_solution_weight: int = 20
    merge_similarity_threshold: int = 60
    overloaded_issue_count: int = 8
    underserved_issue_count: int = 2
    short_title_length: int = 100


DEFAULT_RULES = HeuristicRules()


def _tupleize(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(_tupleize(item) for item in value)
    return value


def _decode_field(name: str, value: Any) -> Any:
    if name == "semantic_domains":
        return tuple(
            SemanticDomain(item["domain"], tuple(item["terms"]), int(item["weight"]))
            for item in value
        )
    if name == "problem_solution_pairs":
        return tuple(
            ProblemSolutionPair(tuple(item["problem"]), tuple(item["solution"]))
            for item in value
        )
    if name in ("category_keywords", "urgency_keywords", "component_groups") and isinstance(value, dict):
        return tuple((key, tuple(terms)) for key, terms in value.items())
    return _tupleize(value)


def load_rules(path: Path | str | None = None, *, base: HeuristicRules = DEFAULT_RULES) -> HeuristicRules:
    """Return ``base`` with the overrides from a JSON file applied.

    Table-valued keys replace the whole table. Unknown keys are rejected
    so a typo cannot silently fall back to a default.
    """
    if path is None:
        return base
    data: Dict[str, Any] = json.loads(Path(path).read_text(encoding="utf-8"))
    known = {f.name for f in fields(HeuristicRules)}
    unknown: List[str] = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown heuristic rule keys: {', '.join(unknown)}")
    overrides = {name: _decode_field(name, value) for name, value in data.items()}
    return replace(base, **overrides)


_WORD = re.compile(r"\b\w{3,}\b")


def extract_keywords(text: str, rules: HeuristicRules = DEFAULT_RULES) -> List[str]:
    """Lower-cased words of three or more characters, minus stop words, in order."""
    stop_words = set(rules.stop_words)
    return [word for word in _WORD.findall(text.lower()) if word not in stop_words]
