"""Heuristic analysis of free text against the current project state.

Categorization, urgency and complexity are keyword lookups over the
tables in :mod:`issue_interview.heuristics`. Scoring against open issues
is an ordered additive rule system; the thresholds are tunable but the
rule order is fixed.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .heuristics import CATEGORIES, DEFAULT_RULES, HeuristicRules, extract_keywords
from .interview_logging import log_performance
from .models import (
    ActionRecommendation,
    OpenIssue,
    ProjectSnapshot,
    ScoredCandidateIssue,
    ThoughtAnalysis,
    ThoughtEvaluation,
)
from .repositories import RepositoryRegistry, repository_tokens

logger = logging.getLogger("issue_interview.analyzer")

TEMPLATE_BY_CATEGORY = {
    "architecture": "feature",
    "feature-idea": "feature",
    "bug-insight": "bug-fix",
    "technical-debt": "bug-fix",
    "process-improvement": "general",
}

PRIORITY_BY_URGENCY = {
    "immediate": "High",
    "future": "Low",
}


def _contains_word(text: str, terms: Iterable[str]) -> bool:
    terms = list(terms)
    if not terms:
        return False
    pattern = r"\b(?:" + "|".join(re.escape(term) for term in terms) + r")\b"
    return re.search(pattern, text) is not None


def _combined_text(text: Optional[str], tags: Sequence[str] = (), context: Optional[str] = None) -> str:
    return f"{text or ''} {' '.join(tags)} {context or ''}".lower()


class HeuristicAnalyzer:
    """Classify, score and relate free-text thoughts to open issues."""

    def __init__(self, registry: Optional[RepositoryRegistry] = None, rules: HeuristicRules = DEFAULT_RULES):
        self.registry = registry
        self.rules = rules

    # ------------------------------------------------------------------
    # Pure classification
    # ------------------------------------------------------------------

    def classify_category(self, text: Optional[str], tags: Sequence[str] = ()) -> str:
        """Explicit category tag, then first keyword table hit, then the default."""
        for tag in tags:
            normalized = str(tag).strip().lower()
            if normalized in CATEGORIES:
                return normalized
        lowered = (text or "").lower()
        for category, terms in self.rules.category_keywords:
            if any(term in lowered for term in terms):
                return category
        return self.rules.default_category

    def estimate_urgency(self, text: Optional[str]) -> str:
        lowered = (text or "").lower()
        for urgency, terms in self.rules.urgency_keywords:
            if any(term in lowered for term in terms):
                return urgency
        return self.rules.default_urgency

    def suggest_priority(self, urgency: str) -> str:
        return PRIORITY_BY_URGENCY.get(urgency, "Medium")

    def extract_keywords(self, text: Optional[str]) -> List[str]:
        return extract_keywords(text or "", self.rules)

    def estimate_complexity(self, text: Optional[str]) -> str:
        """Weighted indicator count: low, medium or high."""
        lowered = (text or "").lower()
        score = 0
        for terms, weight in self.rules.complexity_indicators:
            score += weight * sum(1 for term in terms if term in lowered)
        if score >= self.rules.high_complexity_score:
            return "high"
        if score >= self.rules.medium_complexity_score:
            return "medium"
        return "low"

    def analyze_thought_content(
        self,
        text: Optional[str],
        tags: Sequence[str] = (),
        context: Optional[str] = None,
    ) -> ThoughtAnalysis:
        all_text = _combined_text(text, tags, context)
        return ThoughtAnalysis(
            keywords=self.extract_keywords(all_text),
            has_urgency_indicators=_contains_word(all_text, self.rules.urgency_indicators),
            has_implementation_details=_contains_word(all_text, self.rules.implementation_terms),
            has_architectural_implications=_contains_word(all_text, self.rules.architecture_terms),
            complexity=self.estimate_complexity(all_text),
            tech_mentions=[term for term in self.rules.tech_terms if _contains_word(all_text, [term])],
        )

    def classify_with_confidence(
        self,
        text: Optional[str],
        tags: Sequence[str] = (),
        context: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Score every category by weighted term counts; explicit tags add a bonus."""
        all_text = _combined_text(text, tags, context)
        scores: Dict[str, int] = {}
        reasons: Dict[str, List[str]] = {}
        for category, weight, terms in self.rules.category_confidence_terms:
            matches = sum(1 for term in terms if term in all_text)
            if matches:
                scores[category] = matches * weight
                reasons[category] = [f"Found {matches} {category} terms"]

        for tag in tags:
            normalized = str(tag).strip().lower()
            if normalized in CATEGORIES:
                scores[normalized] = scores.get(normalized, 0) + self.rules.explicit_tag_bonus
                reasons.setdefault(normalized, []).append("Explicitly tagged")

        ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
        ranked = [(category, min(100, max(0, score))) for category, score in ranked]
        if ranked:
            category, confidence = ranked[0]
        else:
            category, confidence = self.rules.default_category, 30

        return {
            "category": category,
            "confidence": confidence,
            "alternative_categories": [
                {"category": name, "confidence": score}
                for name, score in ranked[1:4]
                if score > 20
            ],
            "reasoning": ", ".join(reasons.get(category, [])) or "Default classification based on general content",
        }

    def map_category_to_template(self, category: str, multi_repo: bool = False) -> str:
        if multi_repo:
            return "cross-repo"
        return TEMPLATE_BY_CATEGORY.get(category, "general")

    def infer_repositories(self, text: Optional[str], include_components: bool = True) -> List[str]:
        """Repositories named in the text, plus those implied by component vocabulary."""
        if self.registry is None:
            return []
        lowered = (text or "").lower()
        found: List[str] = []
        for repository in self.registry.repositories:
            if re.search(r"(?<![\w-])" + re.escape(repository.lower()) + r"(?![\w-])", lowered):
                found.append(repository)
        if not include_components:
            return found

        for component, terms in self.rules.component_groups:
            if not re.search(r"\b(?:" + "|".join(re.escape(t) for t in (component, *terms)) + r")s?\b", lowered):
                continue
            for repository in self.registry.repositories:
                if component in repository_tokens([repository]) and repository not in found:
                    found.append(repository)
        return found

    # ------------------------------------------------------------------
    # Scoring against the project snapshot
    # ------------------------------------------------------------------

    def _snapshot(self, snapshot: Optional[ProjectSnapshot]) -> ProjectSnapshot:
        if snapshot is not None:
            return snapshot
        if self.registry is not None:
            return self.registry.build_snapshot()
        return ProjectSnapshot()

    def analyze_against_project_state(
        self,
        text: Optional[str],
        tags: Sequence[str] = (),
        snapshot: Optional[ProjectSnapshot] = None,
        context: Optional[str] = None,
    ) -> ThoughtEvaluation:
        """Apply the ordered additive rules; an issue is suggested when the score reaches the threshold."""
        snapshot = self._snapshot(snapshot)
        analysis = self.analyze_thought_content(text, tags, context)
        keywords = analysis.keywords

        score = 0
        reasoning: List[str] = []
        template = "general"
        priority = "Low"

        areas = [area.lower() for area in snapshot.priority_areas]
        if any(keyword in area for keyword in keywords for area in areas):
            score += 3
            reasoning.append("addresses current priority areas")
            priority = "High"

        underserved = repository_tokens(snapshot.underserved_repositories)
        if any(keyword in underserved for keyword in keywords):
            score += 2
            reasoning.append("addresses underserved areas")
            template = "feature"

        overloaded = repository_tokens(snapshot.overloaded_repositories)
        if any(keyword in overloaded for keyword in keywords) and not analysis.has_urgency_indicators:
            score -= 1
            reasoning.append("targets already busy area - consider timing")

        if analysis.has_urgency_indicators:
            score += 2
            reasoning.append("contains urgency indicators")
            priority = "High"
            template = "bug-fix"

        if analysis.has_implementation_details:
            score += 1
            reasoning.append("includes implementation details")
            template = "feature"

        if analysis.has_architectural_implications:
            score += 1
            reasoning.append("has architectural implications")
            if analysis.complexity == "high":
                template = "cross-repo"

        should_suggest = score >= self.rules.suggest_issue_threshold
        if priority == "Low" and should_suggest:
            priority = "Medium"

        return ThoughtEvaluation(
            should_suggest_issue=should_suggest,
            reasoning=", ".join(reasoning) if reasoning else "general idea captured",
            suggested_template=template,
            suggested_priority=priority,
            category=self.classify_category(text, tags),
            score=score,
        )

    def _semantic_matches(self, thought_text: str, issues: Sequence[OpenIssue]) -> List[ScoredCandidateIssue]:
        rules = self.rules
        candidates: List[ScoredCandidateIssue] = []
        for issue in issues:
            issue_text = issue.text.lower()
            similarity = 0
            reasons: List[str] = []

            for domain in rules.semantic_domains:
                if any(t in thought_text for t in domain.terms) and any(t in issue_text for t in domain.terms):
                    similarity += domain.weight
                    reasons.append(f"both relate to {domain.domain}")

            repository = (issue.repository or "").lower()
            for component, terms in rules.component_groups:
                thought_has = any(term in thought_text for term in terms)
                issue_has = any(term in issue_text for term in terms) or component in repository
                if thought_has and issue_has:
                    similarity += rules.component_weight
                    reasons.append(f"both target {component} component")

            for pair in rules.problem_solution_pairs:
                forward = any(t in thought_text for t in pair.problem) and any(t in issue_text for t in pair.solution)
                backward = any(t in thought_text for t in pair.solution) and any(t in issue_text for t in pair.problem)
                if forward or backward:
                    similarity += rules.problem_solution_weight
                    reasons.append("addresses related problem/solution space")

            if similarity > rules.related_similarity_threshold:
                candidates.append(ScoredCandidateIssue(
                    issue=issue,
                    similarity=min(similarity, 100),
                    reason=", ".join(reasons) or "semantic relationship detected",
                ))

        return sorted(candidates, key=lambda candidate: candidate.similarity, reverse=True)

    def _tag_matches(self, tags: Sequence[str], issues: Sequence[OpenIssue]) -> List[ScoredCandidateIssue]:
        candidates: List[ScoredCandidateIssue] = []
        for issue in issues:
            title = (issue.title or "").lower()
            body = (issue.body_excerpt or "").lower()
            similarity = 0
            reasons: List[str] = []
            for tag in tags:
                needle = str(tag).lower()
                if needle and (needle in title or needle in body):
                    similarity += self.rules.tag_match_weight
                    reasons.append(f"tag match: {tag}")
            if similarity > self.rules.fallback_similarity_threshold:
                candidates.append(ScoredCandidateIssue(issue, min(similarity, 100), ", ".join(reasons)))
        return sorted(candidates, key=lambda candidate: candidate.similarity, reverse=True)

    @log_performance("find_related_issues")
    def find_related_issues(
        self,
        text: Optional[str],
        tags: Sequence[str] = (),
        snapshot: Optional[ProjectSnapshot] = None,
        context: Optional[str] = None,
    ) -> List[ScoredCandidateIssue]:
        """Open issues related to the text, most similar first.

        Never raises: any failure, including building the snapshot, falls
        back to plain tag matching over whatever issues are at hand.
        """
        known_issues = list(snapshot.open_issues) if snapshot is not None else []
        try:
            current = self._snapshot(snapshot)
            known_issues = list(current.open_issues)
            return self._semantic_matches(_combined_text(text, tags, context), known_issues)
        except Exception as e:
            logger.warning(f"Related-issue analysis failed, using tag matching instead: {e}")

        try:
            return self._tag_matches(tags, known_issues)
        except Exception as e:
            logger.error(f"Tag matching fallback failed: {e}")
            return []

    @log_performance("recommend_action")
    def recommend_action(
        self,
        text: Optional[str],
        tags: Sequence[str] = (),
        snapshot: Optional[ProjectSnapshot] = None,
        context: Optional[str] = None,
    ) -> ActionRecommendation:
        """Decide whether to capture, merge, discuss, or open a simple or comprehensive issue."""
        try:
            snapshot = self._snapshot(snapshot)
        except Exception as e:
            logger.warning(f"Could not build project snapshot, recommending without it: {e}")
            snapshot = ProjectSnapshot(fetch_errors={"*": str(e)})

        all_text = _combined_text(text, tags, context)
        category = self.classify_category(text, tags)
        urgency = self.estimate_urgency(text)
        complexity = self.estimate_complexity(all_text)
        evaluation = self.analyze_against_project_state(text, tags, snapshot, context)
        related = self.find_related_issues(text, tags, snapshot, context)

        if category == "architecture" or complexity == "high":
            action = "schedule_discussion"
            reasoning = "architectural or high-complexity change; discuss before opening an issue"
        elif related and related[0].similarity >= self.rules.merge_similarity_threshold and urgency != "future":
            top = related[0]
            action = "add_to_existing"
            reasoning = (
                f"closely related to {top.issue.repository}#{top.issue.id} "
                f"({top.similarity}% similar): {top.reason}"
            )
        elif evaluation.should_suggest_issue and complexity == "medium" and urgency != "future":
            action = "create_comprehensive_issue"
            reasoning = f"worth an issue ({evaluation.reasoning}) with moderate scope"
        elif evaluation.should_suggest_issue:
            action = "create_simple_issue"
            reasoning = f"worth an issue ({evaluation.reasoning})"
        else:
            action = "capture_only"
            reasoning = f"capture for later triage ({evaluation.reasoning})"

        logger.debug(f"Recommended {action} for {category} thought (complexity {complexity}, urgency {urgency})")
        return ActionRecommendation(
            action=action,
            complexity=complexity,
            reasoning=reasoning,
            evaluation=evaluation,
            related_issues=related,
        )
