"""Heuristic translation checks."""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

from lokal.quality.icu import IcuSyntaxError, looks_like_icu, mask_templates, parse_icu_arguments, validate_icu_syntax

SEVERITIES = ("error", "warning", "info")

_DOUBLE_CURLY_RE = re.compile(r"\{\{\s*([^{}\r\n]+?)\s*\}\}")
_CURLY_RE = re.compile(r"\{\s*(\d+|[A-Za-z_][A-Za-z0-9_]*)\s*[,}]")
_PRINTF_RE = re.compile(r"%(?:\d+\$)?[-+0#]*\d*(?:\.\d+)?[sdifuxXeEgGc@]")
_ENDING_PUNCTUATION = {
    ".": ".",
    "!": "!",
    "?": "?",
    ":": ":",
    ";": ";",
    "…": "…",
    "。": ".",
    "！": "!",
    "？": "?",
    "：": ":",
    "；": ";",
}
_MIN_EXPECTED_LENGTH = 10
LENGTH_TOO_LONG_RATIO = 2.0
LENGTH_CRITICAL_RATIO = 3.0
LENGTH_EXTREME_RATIO = 5.0


@dataclass(slots=True, frozen=True)
class QualityIssue:
    type: str
    severity: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.type, "severity": self.severity, "message": self.message}
        if self.context:
            payload["context"] = dict(self.context)
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "QualityIssue":
        return cls(
            type=str(payload.get("type", "")),
            severity=str(payload.get("severity", "info")),
            message=str(payload.get("message", "")),
            context=dict(payload.get("context") or {}),
        )


@dataclass(slots=True, frozen=True)
class GlossaryTerm:
    source_term: str
    target_term: str


def extract_placeholders(text: str) -> Counter[str]:
    """Collect placeholder tokens: ``{{x}}``, ICU ``{x}`` arguments and printf specs."""

    tokens: Counter[str] = Counter()
    for match in _DOUBLE_CURLY_RE.finditer(text):
        tokens[f"{{{{{match.group(1)}}}}}"] += 1
    remainder = _DOUBLE_CURLY_RE.sub(" ", text)

    if "{" in remainder:
        try:
            # Argument names count once each; plural branches repeat them.
            for name in parse_icu_arguments(remainder):
                tokens[f"{{{name}}}"] += 1
        except IcuSyntaxError:
            for name in dict.fromkeys(_CURLY_RE.findall(remainder)):
                tokens[f"{{{name}}}"] += 1

    for match in _PRINTF_RE.finditer(remainder):
        tokens[match.group(0)] += 1
    return tokens


def check_placeholders(source: str, target: str) -> list[QualityIssue]:
    source_tokens = extract_placeholders(source)
    target_tokens = extract_placeholders(target)
    issues: list[QualityIssue] = []

    for token in sorted(source_tokens):
        missing = source_tokens[token] - target_tokens.get(token, 0)
        if missing > 0:
            issues.append(
                QualityIssue(
                    type="placeholder_missing",
                    severity="error",
                    message=f"Placeholder {token} is missing from the translation",
                    context={"placeholder": token, "expected": str(source_tokens[token]), "found": str(target_tokens.get(token, 0))},
                )
            )
    for token in sorted(target_tokens):
        extra = target_tokens[token] - source_tokens.get(token, 0)
        if extra > 0:
            issues.append(
                QualityIssue(
                    type="placeholder_extra",
                    severity="warning",
                    message=f"Placeholder {token} does not appear in the source",
                    context={"placeholder": token},
                )
            )
    return issues


def check_whitespace(source: str, target: str) -> list[QualityIssue]:
    issues: list[QualityIssue] = []
    source_leading = source[: len(source) - len(source.lstrip())]
    target_leading = target[: len(target) - len(target.lstrip())]
    if source_leading != target_leading:
        issues.append(
            QualityIssue(
                type="whitespace_leading",
                severity="warning",
                message="Leading whitespace differs from the source",
                context={"expected": source_leading, "found": target_leading},
            )
        )

    source_trailing = source[len(source.rstrip()):]
    target_trailing = target[len(target.rstrip()):]
    if source_trailing != target_trailing:
        issues.append(
            QualityIssue(
                type="whitespace_trailing",
                severity="warning",
                message="Trailing whitespace differs from the source",
                context={"expected": source_trailing, "found": target_trailing},
            )
        )

    if "  " in target.strip() and "  " not in source.strip():
        issues.append(
            QualityIssue(
                type="whitespace_double",
                severity="info",
                message="Translation contains double spaces",
            )
        )
    if "\t" in target and "\t" not in source:
        issues.append(
            QualityIssue(
                type="whitespace_tab",
                severity="info",
                message="Translation contains tab characters",
            )
        )
    return issues


def _ending_punctuation(text: str) -> str | None:
    stripped = text.rstrip()
    if not stripped:
        return None
    if stripped.endswith("..."):
        return "…"
    return _ENDING_PUNCTUATION.get(stripped[-1])


def check_punctuation(source: str, target: str) -> list[QualityIssue]:
    source_mark = _ending_punctuation(source)
    target_mark = _ending_punctuation(target)
    if source_mark == target_mark:
        return []
    return [
        QualityIssue(
            type="punctuation_mismatch",
            severity="warning",
            message="Ending punctuation differs from the source",
            context={"expected": source_mark or "", "found": target_mark or ""},
        )
    ]


def check_length(source: str, target: str) -> list[QualityIssue]:
    if not source.strip() or not target.strip():
        return []
    ratio = len(target) / max(len(source), _MIN_EXPECTED_LENGTH)
    context = {"ratio": f"{ratio:.1f}"}
    if ratio >= LENGTH_EXTREME_RATIO:
        return [
            QualityIssue(
                type="length_extreme",
                severity="error",
                message=f"Translation is {ratio:.1f}x the expected length",
                context=context,
            )
        ]
    if ratio >= LENGTH_CRITICAL_RATIO:
        return [
            QualityIssue(
                type="length_critical",
                severity="warning",
                message=f"Translation is {ratio:.1f}x the expected length",
                context=context,
            )
        ]
    if ratio >= LENGTH_TOO_LONG_RATIO:
        return [
            QualityIssue(
                type="length_too_long",
                severity="info",
                message=f"Translation is {ratio:.1f}x longer than the source",
                context=context,
            )
        ]
    return []


def check_icu_syntax(target: str) -> list[QualityIssue]:
    if not looks_like_icu(target):
        return []
    result = validate_icu_syntax(target)
    if not result.valid and "{{" in target:
        # Plural branches may legitimately open with "{{"; only mask on failure.
        result = validate_icu_syntax(mask_templates(target))
    if result.valid:
        return []
    return [
        QualityIssue(
            type="icu_syntax",
            severity="error",
            message=f"Invalid ICU message syntax: {result.error}",
        )
    ]


def check_glossary(source: str, target: str, terms: Iterable[GlossaryTerm]) -> list[QualityIssue]:
    source_lower = source.lower()
    target_lower = target.lower()
    issues: list[QualityIssue] = []
    for term in terms:
        if not term.source_term or term.source_term.lower() not in source_lower:
            continue
        if term.target_term.lower() in target_lower:
            continue
        issues.append(
            QualityIssue(
                type="glossary_missing",
                severity="warning",
                message=f"Glossary term '{term.source_term}' should be translated as '{term.target_term}'",
                context={"expected": term.target_term},
            )
        )
    return issues


def run_quality_checks(
    source: str | None,
    target: str,
    *,
    glossary: Sequence[GlossaryTerm] = (),
) -> list[QualityIssue]:
    """Run every heuristic check; without source text only ICU syntax is checked."""

    if not source:
        return check_icu_syntax(target)
    issues: list[QualityIssue] = []
    issues.extend(check_placeholders(source, target))
    issues.extend(check_whitespace(source, target))
    issues.extend(check_punctuation(source, target))
    issues.extend(check_length(source, target))
    issues.extend(check_icu_syntax(target))
    if glossary:
        issues.extend(check_glossary(source, target, glossary))
    return issues
