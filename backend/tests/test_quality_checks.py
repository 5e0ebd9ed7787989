"""Unit tests for heuristic checks, score arithmetic, and MQM reply parsing."""

from __future__ import annotations

import json
import unittest

from lokal.errors import EvaluationError
from lokal.quality.ai_evaluator import build_mqm_user_prompt, parse_mqm_response
from lokal.quality.checks import (
    GlossaryTerm,
    QualityIssue,
    check_glossary,
    check_length,
    check_placeholders,
    check_punctuation,
    check_whitespace,
    extract_placeholders,
    run_quality_checks,
)
from lokal.quality.scoring import (
    calculate_combined_score,
    calculate_score,
    generate_content_hash,
    heuristic_result,
    is_passing,
    needs_ai_evaluation,
)


def _types(issues: list[QualityIssue]) -> list[str]:
    return [issue.type for issue in issues]


class HeuristicCheckTests(unittest.TestCase):
    def test_extracts_every_placeholder_style(self) -> None:
        tokens = extract_placeholders("{{user}} has {count} items, %s left and %1$d done")

        self.assertEqual(tokens["{{user}}"], 1)
        self.assertEqual(tokens["{count}"], 1)
        self.assertEqual(tokens["%s"], 1)
        self.assertEqual(tokens["%1$d"], 1)

    def test_plain_percent_sign_is_not_a_placeholder(self) -> None:
        self.assertEqual(check_placeholders("100% sure", "100% sicher"), [])

    def test_missing_placeholder_is_error_and_extra_is_warning(self) -> None:
        missing = check_placeholders("Hello {name}!", "Hallo!")
        extra = check_placeholders("Hello!", "Hallo {name}!")

        self.assertEqual([(item.type, item.severity) for item in missing], [("placeholder_missing", "error")])
        self.assertEqual([(item.type, item.severity) for item in extra], [("placeholder_extra", "warning")])

    def test_plural_branches_count_argument_once(self) -> None:
        source = "{count, plural, one {# item} other {# items}}"
        target = "{count, plural, one {# Artikel} other {# Artikel}}"

        self.assertEqual(check_placeholders(source, target), [])

    def test_whitespace_checks(self) -> None:
        self.assertEqual(_types(check_whitespace(" Save", "Speichern")), ["whitespace_leading"])
        self.assertEqual(_types(check_whitespace("Save ", "Speichern")), ["whitespace_trailing"])
        self.assertEqual(_types(check_whitespace("Save now", "Jetzt  speichern")), ["whitespace_double"])
        self.assertEqual(_types(check_whitespace("Save now", "Jetzt\tspeichern")), ["whitespace_tab"])

    def test_punctuation_maps_full_width_marks(self) -> None:
        self.assertEqual(check_punctuation("Really?", "本当？"), [])
        self.assertEqual(check_punctuation("Loading...", "Laden…"), [])
        self.assertEqual(_types(check_punctuation("Saved.", "Gespeichert")), ["punctuation_mismatch"])

    def test_length_ratio_thresholds(self) -> None:
        self.assertEqual(check_length("Save", "x" * 19), [])
        self.assertEqual([item.severity for item in check_length("Save", "x" * 25)], ["info"])
        self.assertEqual([item.severity for item in check_length("Save", "x" * 35)], ["warning"])
        self.assertEqual([item.severity for item in check_length("Save", "x" * 50)], ["error"])

    def test_glossary_term_must_appear_in_target(self) -> None:
        terms = [GlossaryTerm(source_term="Settings", target_term="Einstellungen")]

        self.assertEqual(check_glossary("Open settings", "Einstellungen öffnen", terms), [])
        issues = check_glossary("Open settings", "Konfiguration öffnen", terms)
        self.assertEqual([(item.type, item.severity) for item in issues], [("glossary_missing", "warning")])
        self.assertEqual(check_glossary("Open menu", "Menü öffnen", terms), [])

    def test_clean_translation_has_no_issues(self) -> None:
        self.assertEqual(run_quality_checks("Hello {name}!", "Hallo {name}!"), [])

    def test_without_source_only_icu_syntax_is_checked(self) -> None:
        issues = run_quality_checks(None, "Hello {name")

        self.assertEqual([(item.type, item.severity) for item in issues], [("icu_syntax", "error")])
        self.assertEqual(run_quality_checks(None, "  trailing spaces  "), [])

    def test_issue_dict_round_trip_keeps_context(self) -> None:
        issue = QualityIssue(type="placeholder_extra", severity="warning", message="x", context={"placeholder": "{a}"})

        self.assertEqual(QualityIssue.from_dict(issue.to_dict()), issue)
        self.assertNotIn("context", QualityIssue(type="t", severity="info", message="m").to_dict())


class ScoringTests(unittest.TestCase):
    def test_penalties_per_severity(self) -> None:
        issues = [
            QualityIssue(type="placeholder_missing", severity="error", message=""),
            QualityIssue(type="punctuation_mismatch", severity="warning", message=""),
            QualityIssue(type="whitespace_double", severity="info", message=""),
        ]

        self.assertEqual(calculate_score(issues), 63)

    def test_glossary_penalty_is_capped(self) -> None:
        issues = [QualityIssue(type="glossary_missing", severity="warning", message="") for _ in range(3)]

        self.assertEqual(calculate_score(issues), 90)

    def test_scores_stay_within_bounds(self) -> None:
        errors = [QualityIssue(type="placeholder_missing", severity="error", message="") for _ in range(10)]

        self.assertEqual(calculate_score(errors), 0)
        self.assertEqual(calculate_score([]), 100)
        for values in ((0, 0, 0, 0), (100, 100, 100, 100), (100, 0, 100, 0)):
            with self.subTest(values=values):
                score = calculate_combined_score(
                    accuracy=values[0], fluency=values[1], terminology=values[2], format_score=values[3]
                )
                self.assertGreaterEqual(score, 0)
                self.assertLessEqual(score, 100)

    def test_combined_score_weights(self) -> None:
        self.assertEqual(calculate_combined_score(accuracy=90, fluency=80, terminology=80, format_score=100), 88)
        self.assertEqual(calculate_combined_score(accuracy=90, fluency=80, terminology=70, format_score=100), 87)

    def test_pass_threshold_and_ai_need(self) -> None:
        error = QualityIssue(type="icu_syntax", severity="error", message="")
        warning = QualityIssue(type="punctuation_mismatch", severity="warning", message="")

        self.assertTrue(is_passing(80))
        self.assertFalse(is_passing(79))
        self.assertTrue(needs_ai_evaluation(79, []))
        self.assertTrue(needs_ai_evaluation(85, [error]))
        self.assertFalse(needs_ai_evaluation(90, [warning]))
        result = heuristic_result([error])
        self.assertEqual(result.score, 75)
        self.assertFalse(result.passed)
        self.assertTrue(result.needs_ai_evaluation)

    def test_content_hash_depends_on_source_and_target(self) -> None:
        base = generate_content_hash("Hello", "Hallo")

        self.assertEqual(base, generate_content_hash("Hello", "Hallo"))
        self.assertNotEqual(base, generate_content_hash("Hello!", "Hallo"))
        self.assertNotEqual(base, generate_content_hash("Hello", "Hallo!"))
        self.assertNotEqual(generate_content_hash("ab", "c"), generate_content_hash("a", "bc"))
        self.assertEqual(generate_content_hash(None, "x"), generate_content_hash("", "x"))


class MQMResponseTests(unittest.TestCase):
    def test_parses_json_embedded_in_prose(self) -> None:
        payload = {
            "accuracy": 92.4,
            "fluency": 80,
            "terminology": 75,
            "issues": [
                {"type": "accuracy", "severity": "major", "message": " Meaning shifted "},
                {"type": "fluency", "severity": "critical", "message": "Ungrammatical"},
            ],
        }

        result = parse_mqm_response(f"Here is my evaluation:\n{json.dumps(payload)}\nThanks")

        self.assertEqual((result.accuracy, result.fluency, result.terminology), (92, 80, 75))
        self.assertEqual(
            [(issue.type, issue.severity, issue.message) for issue in result.issues],
            [("ai_accuracy", "warning", "Meaning shifted"), ("ai_fluency", "error", "Ungrammatical")],
        )

    def test_rejects_unusable_replies(self) -> None:
        replies = [
            "I cannot evaluate this.",
            "{not json}",
            json.dumps({"accuracy": 150, "fluency": 80, "terminology": 80}),
            json.dumps({"accuracy": 90, "fluency": 80}),
        ]
        for reply in replies:
            with self.subTest(reply=reply):
                with self.assertRaises(EvaluationError):
                    parse_mqm_response(reply)

    def test_user_prompt_lists_glossary_terms(self) -> None:
        prompt = build_mqm_user_prompt(
            key_name="settings.save",
            source_text="Save settings",
            source_language="en",
            target_text="Einstellungen speichern",
            target_language="de",
            glossary=[GlossaryTerm(source_term="settings", target_term="Einstellungen")],
        )

        self.assertIn("settings.save", prompt)
        self.assertIn("Einstellungen", prompt)
        self.assertIn("de", prompt)


if __name__ == "__main__":
    unittest.main()
