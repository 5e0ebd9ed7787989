"""Translation quality checks, scoring, and AI evaluation."""

from lokal.quality.checks import GlossaryTerm, QualityIssue, run_quality_checks
from lokal.quality.icu import IcuValidationResult, validate_icu_syntax
from lokal.quality.scoring import PASS_THRESHOLD, calculate_combined_score, calculate_score, generate_content_hash

__all__ = [
    "GlossaryTerm",
    "IcuValidationResult",
    "PASS_THRESHOLD",
    "QualityIssue",
    "calculate_combined_score",
    "calculate_score",
    "generate_content_hash",
    "run_quality_checks",
    "validate_icu_syntax",
]
