"""Score arithmetic shared by the heuristic and AI evaluation paths."""

from __future__ import annotations

import hashlib
import math
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from lokal.quality.checks import QualityIssue

PASS_THRESHOLD = 80
MAX_SCORE = 100
SEVERITY_PENALTIES = {"error": 25, "warning": 10, "info": 2}
GLOSSARY_MAX_PENALTY = 10
SCORE_WEIGHTS = {"accuracy": 0.40, "fluency": 0.25, "terminology": 0.15, "format": 0.20}
_HASH_SEPARATOR = "\x1f"


@dataclass(slots=True)
class HeuristicResult:
    score: int
    issues: list[QualityIssue] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return is_passing(self.score)

    @property
    def needs_ai_evaluation(self) -> bool:
        return needs_ai_evaluation(self.score, self.issues)


def clamp_score(value: float) -> int:
    return max(0, min(MAX_SCORE, math.floor(value + 0.5)))


def is_passing(score: int) -> bool:
    return score >= PASS_THRESHOLD


def calculate_score(issues: Iterable[QualityIssue]) -> int:
    """Deduct per-severity penalties from 100; glossary penalties are capped."""

    penalty = 0
    glossary_penalty = 0
    for issue in issues:
        amount = SEVERITY_PENALTIES.get(issue.severity, 0)
        if issue.type == "glossary_missing":
            glossary_penalty += amount
        else:
            penalty += amount
    penalty += min(glossary_penalty, GLOSSARY_MAX_PENALTY)
    return clamp_score(MAX_SCORE - penalty)


def needs_ai_evaluation(score: int, issues: Sequence[QualityIssue]) -> bool:
    return score < PASS_THRESHOLD or any(issue.severity == "error" for issue in issues)


def heuristic_result(issues: Sequence[QualityIssue]) -> HeuristicResult:
    return HeuristicResult(score=calculate_score(issues), issues=list(issues))


def calculate_combined_score(*, accuracy: float, fluency: float, terminology: float, format_score: float) -> int:
    """Weighted MQM combination; format comes from the heuristic pass."""

    combined = (
        SCORE_WEIGHTS["accuracy"] * accuracy
        + SCORE_WEIGHTS["fluency"] * fluency
        + SCORE_WEIGHTS["terminology"] * terminology
        + SCORE_WEIGHTS["format"] * format_score
    )
    return clamp_score(combined)


def generate_content_hash(source: str | None, target: str) -> str:
    payload = f"{source or ''}{_HASH_SEPARATOR}{target}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
