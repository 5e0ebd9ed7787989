"""Integration tests for tiered quality estimation and the score cache."""

from __future__ import annotations

import gc
import unittest

from sqlalchemy import func, insert, select

from helpers import StubTextClient, add_glossary_term, build_engine, failing_client, seed_project, stub_factory
from lokal.errors import NotFoundError, ValidationError
from lokal.models import ActivityEvent, TranslationQualityScore
from lokal.quality.circuit_breaker import CircuitBreaker
from lokal.services import quality as quality_service
from lokal.services.branches import create_branch, create_key, set_translation_value
from lokal.services.quality import QualityEstimationService

_AI_REPLY = {
    "accuracy": 90,
    "fluency": 80,
    "terminology": 80,
    "issues": [{"type": "fluency", "severity": "minor", "message": "Slightly formal"}],
}


class _RacingQualityService(QualityEstimationService):
    """Inserts a competing score row right after the first lookup misses."""

    def __init__(self) -> None:
        super().__init__()
        self.raced = False

    def _find_score(self, db, translation_id):  # noqa: ANN001, ANN202
        if not self.raced:
            self.raced = True
            db.execute(
                insert(TranslationQualityScore).values(
                    translation_id=translation_id,
                    score=10,
                    evaluation_type="heuristic",
                    content_hash="competing",
                )
            )
            return None
        return super()._find_score(db, translation_id)


class QualityEstimationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine, SessionLocal = build_engine()
        self.db = SessionLocal()
        self.seed = seed_project(self.db)
        self.branch = create_branch(self.db, space_id=self.seed.space_id, name="main", actor_id=self.seed.owner_id)
        key = create_key(
            self.db,
            branch_id=self.branch.id,
            name="greeting",
            translations={"en": "Hello {name}!", "de": "Hallo {name}!"},
        )
        self.key_id = key.id
        self.ids = {translation.language: translation.id for translation in key.translations}

    def tearDown(self) -> None:
        self.db.close()
        self.engine.dispose()

    def _enable_ai(self, service: QualityEstimationService) -> None:
        service.update_config(
            self.db,
            self.seed.project_id,
            {"ai_evaluation_enabled": True, "ai_evaluation_provider": "openai", "ai_evaluation_model": "gpt-4o-mini"},
        )

    def _set_value(self, language: str, value: str) -> None:
        set_translation_value(self.db, translation_id=self.ids[language], value=value, actor_id=self.seed.developer_id)

    def _score_rows(self, translation_id: int) -> int:
        return self.db.scalar(
            select(func.count(TranslationQualityScore.id)).where(TranslationQualityScore.translation_id == translation_id)
        )

    def test_heuristic_score_is_persisted_and_reused(self) -> None:
        service = QualityEstimationService()

        first = service.evaluate(self.db, self.ids["de"])
        second = service.evaluate(self.db, self.ids["de"])

        self.assertEqual(first.score, 100)
        self.assertEqual(first.evaluation_type, "heuristic")
        self.assertFalse(first.cached)
        self.assertTrue(first.passed)
        self.assertTrue(second.cached)
        self.assertEqual(second.score, first.score)
        self.assertEqual(second.content_hash, first.content_hash)
        self.assertEqual(self._score_rows(self.ids["de"]), 1)

    def test_cached_score_skips_ai_even_when_forced(self) -> None:
        client = StubTextClient(_AI_REPLY)
        service = QualityEstimationService(text_client_factory=stub_factory(client))
        self._enable_ai(service)

        first = service.evaluate(self.db, self.ids["de"], force_ai=True)
        second = service.evaluate(self.db, self.ids["de"], force_ai=True)

        self.assertEqual(len(client.calls), 1)
        self.assertTrue(second.cached)
        self.assertEqual(second.score, first.score)

    def test_ai_evaluation_combines_sub_scores(self) -> None:
        client = StubTextClient(_AI_REPLY, input_tokens=321, output_tokens=45)
        service = QualityEstimationService(text_client_factory=stub_factory(client))
        self._enable_ai(service)

        result = service.evaluate(self.db, self.ids["de"], force_ai=True)

        self.assertEqual(result.evaluation_type, "ai")
        self.assertEqual(result.score, 88)
        self.assertEqual(
            (result.accuracy_score, result.fluency_score, result.terminology_score, result.format_score),
            (90, 80, 80, 100),
        )
        self.assertEqual((result.provider, result.model), ("openai", "gpt-4o-mini"))
        self.assertEqual((result.input_tokens, result.output_tokens), (321, 45))
        self.assertFalse(result.ai_fallback)
        self.assertEqual([issue.type for issue in result.issues], ["ai_fluency"])
        system_prompt, user_prompt = client.calls[0]
        self.assertIn("JSON", system_prompt)
        self.assertIn("Hallo {name}!", user_prompt)

    def test_failing_heuristic_escalates_to_ai(self) -> None:
        client = StubTextClient(_AI_REPLY)
        service = QualityEstimationService(text_client_factory=stub_factory(client))
        self._enable_ai(service)
        self._set_value("de", "Hallo!")

        result = service.evaluate(self.db, self.ids["de"])

        self.assertEqual(len(client.calls), 1)
        self.assertEqual(result.evaluation_type, "ai")
        self.assertEqual(result.format_score, 75)
        self.assertIn("placeholder_missing", [issue.type for issue in result.issues])

    def test_passing_heuristic_does_not_call_ai(self) -> None:
        client = StubTextClient(_AI_REPLY)
        service = QualityEstimationService(text_client_factory=stub_factory(client))
        self._enable_ai(service)

        result = service.evaluate(self.db, self.ids["de"])

        self.assertEqual(client.calls, [])
        self.assertEqual(result.evaluation_type, "heuristic")

    def test_ai_failure_falls_back_to_heuristic(self) -> None:
        # Provider errors are not retried; unparseable replies are.
        clients = [
            (failing_client(), 1),
            (StubTextClient(error=RuntimeError("socket closed")), 1),
            (StubTextClient(text="I am unable to help with that."), 3),
        ]
        for client, expected_calls in clients:
            with self.subTest(client=client.text or repr(client.error)):
                service = QualityEstimationService(
                    text_client_factory=stub_factory(client),
                    ai_retry_backoff_seconds=0,
                )
                self._enable_ai(service)
                self._set_value("de", f"Hallo! {len(client.calls)}{id(client)}")

                result = service.evaluate(self.db, self.ids["de"])

                self.assertEqual(len(client.calls), expected_calls)
                self.assertEqual(result.evaluation_type, "heuristic")
                self.assertTrue(result.ai_fallback)
                self.assertEqual(service.circuit_breaker.failure_count, 1)
                self.assertFalse(result.passed)
                self.assertIsNone(result.accuracy_score)

    def test_open_circuit_falls_back_without_calling_provider(self) -> None:
        client = StubTextClient(_AI_REPLY)
        breaker = CircuitBreaker(failure_threshold=1, open_seconds=60)
        breaker.record_failure()
        service = QualityEstimationService(text_client_factory=stub_factory(client), circuit_breaker=breaker)
        self._enable_ai(service)

        result = service.evaluate(self.db, self.ids["de"], force_ai=True)

        self.assertEqual(client.calls, [])
        self.assertTrue(result.ai_fallback)
        self.assertTrue(service.get_cached_score(self.db, self.ids["de"]).ai_fallback)

    def test_concurrent_insert_of_score_row_is_updated(self) -> None:
        service = _RacingQualityService()

        result = service.evaluate(self.db, self.ids["de"])

        self.assertTrue(service.raced)
        self.assertEqual(self._score_rows(self.ids["de"]), 1)
        stored = self.db.scalar(
            select(TranslationQualityScore).where(TranslationQualityScore.translation_id == self.ids["de"])
        )
        self.assertEqual(stored.score, result.score)
        self.assertEqual(stored.content_hash, result.content_hash)
        self.assertNotEqual(stored.content_hash, "competing")

    def test_translation_locks_are_released(self) -> None:
        service = QualityEstimationService()

        service.evaluate(self.db, self.ids["de"])
        service.evaluate(self.db, self.ids["en"])
        gc.collect()

        self.assertNotIn(self.ids["de"], quality_service._translation_locks)
        self.assertNotIn(self.ids["en"], quality_service._translation_locks)

    def test_evaluate_key_scores_every_target_language(self) -> None:
        service = QualityEstimationService()
        self._set_value("de", "Hallo")

        results = service.evaluate_key(self.db, self.key_id, actor_id=self.seed.developer_id)

        self.assertEqual(list(results), ["de"])
        self.assertEqual(results["de"].translation_id, self.ids["de"])
        self.assertFalse(results["de"].passed)
        self.assertIsNone(service.get_cached_score(self.db, self.ids["en"]))
        with self.assertRaises(NotFoundError):
            service.evaluate_key(self.db, 999_999)

    def test_without_ai_configuration_failing_score_stays_heuristic(self) -> None:
        client = StubTextClient(_AI_REPLY)
        service = QualityEstimationService(text_client_factory=stub_factory(client))
        self._set_value("de", "Hallo!")

        result = service.evaluate(self.db, self.ids["de"], force_ai=True)

        self.assertEqual(client.calls, [])
        self.assertEqual(result.score, 75)
        self.assertFalse(result.passed)
        self.assertTrue(result.needs_ai_evaluation)

    def test_glossary_issue_requests_ai_evaluation(self) -> None:
        client = StubTextClient(_AI_REPLY)
        service = QualityEstimationService(text_client_factory=stub_factory(client))
        self._enable_ai(service)
        add_glossary_term(self.db, self.seed.project_id, "settings", "de", "Einstellungen")
        key = create_key(
            self.db,
            branch_id=self.branch.id,
            name="settings.save",
            translations={"en": "Save settings", "de": "Konfiguration speichern"},
        )
        german = next(item for item in key.translations if item.language == "de")

        result = service.evaluate(self.db, german.id)

        self.assertEqual(len(client.calls), 1)
        self.assertIn("<glossary>", client.calls[0][1])
        self.assertEqual(result.format_score, 90)
        self.assertIn("glossary_missing", [issue.type for issue in result.issues])

    def test_changed_target_or_source_invalidates_cache(self) -> None:
        service = QualityEstimationService()
        original = service.evaluate(self.db, self.ids["de"])

        self._set_value("de", "Hallo {name}")
        changed_target = service.evaluate(self.db, self.ids["de"])
        self.assertFalse(changed_target.cached)
        self.assertNotEqual(changed_target.content_hash, original.content_hash)
        self.assertEqual(changed_target.score, 90)

        self._set_value("en", "Hello")
        changed_source = service.evaluate(self.db, self.ids["de"])
        self.assertFalse(changed_source.cached)
        self.assertEqual(changed_source.score, 100)
        self.assertEqual(self._score_rows(self.ids["de"]), 1)

    def test_source_language_is_scored_on_icu_syntax_only(self) -> None:
        client = StubTextClient(_AI_REPLY)
        service = QualityEstimationService(text_client_factory=stub_factory(client))
        self._enable_ai(service)
        self._set_value("en", "Hello {name")

        result = service.evaluate(self.db, self.ids["en"], force_ai=True)

        self.assertEqual(client.calls, [])
        self.assertEqual(result.score, 75)
        self.assertEqual([issue.type for issue in result.issues], ["icu_syntax"])

    def test_empty_or_missing_translation_is_rejected(self) -> None:
        service = QualityEstimationService()
        self._set_value("de", "")

        with self.assertRaises(ValidationError):
            service.evaluate(self.db, self.ids["de"])
        with self.assertRaises(NotFoundError):
            service.evaluate(self.db, 999_999)

    def test_activity_recorded_only_for_actor_requests(self) -> None:
        service = QualityEstimationService()

        service.evaluate(self.db, self.ids["de"])
        self._set_value("de", "Hallo {name}")
        service.evaluate(self.db, self.ids["de"], actor_id=self.seed.developer_id)

        events = self.db.scalars(select(ActivityEvent).where(ActivityEvent.type == "quality_evaluate")).all()
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].user_id, self.seed.developer_id)
        self.assertEqual(events[0].metadata_json["language"], "de")

    def test_stored_scores_respect_bounds_and_pass_flag(self) -> None:
        service = QualityEstimationService(text_client_factory=stub_factory(StubTextClient(_AI_REPLY)))
        self._enable_ai(service)
        values = ["Hallo {name}!", "Hallo!", "x" * 80, "{broken", "Hallo  {name}"]
        for value in values:
            with self.subTest(value=value):
                self._set_value("de", value)
                result = service.evaluate(self.db, self.ids["de"])
                self.assertGreaterEqual(result.score, 0)
                self.assertLessEqual(result.score, 100)
                for sub_score in (result.accuracy_score, result.fluency_score, result.terminology_score):
                    if sub_score is not None:
                        self.assertTrue(0 <= sub_score <= 100)
                self.assertEqual(result.passed, result.score >= 80)
                cached = service.get_cached_score(self.db, self.ids["de"])
                self.assertEqual(cached.passed, cached.score >= 80)

    def test_key_issues_grouped_by_language(self) -> None:
        service = QualityEstimationService()
        self._set_value("de", "Hallo")
        service.evaluate(self.db, self.ids["de"])
        service.evaluate(self.db, self.ids["en"])

        issues = service.get_key_issues(self.db, self.key_id)

        self.assertEqual(list(issues), ["de"])
        self.assertEqual(
            sorted(item["type"] for item in issues["de"]),
            ["placeholder_missing", "punctuation_mismatch"],
        )

    def test_quality_config_defaults_and_validation(self) -> None:
        service = QualityEstimationService()

        defaults = service.get_config(self.db, self.seed.project_id)
        self.assertEqual(defaults["auto_approve_threshold"], 80)
        self.assertFalse(defaults["ai_evaluation_enabled"])

        updated = service.update_config(self.db, self.seed.project_id, {"flag_threshold": 50}, actor_id=self.seed.owner_id)
        self.assertEqual(updated["flag_threshold"], 50)
        self.assertEqual(service.get_config(self.db, self.seed.project_id)["flag_threshold"], 50)

        with self.assertRaises(ValidationError):
            service.update_config(self.db, self.seed.project_id, {"flag_threshold": 90})
        with self.assertRaises(ValidationError):
            service.update_config(self.db, self.seed.project_id, {"auto_approve_threshold": 101})
        with self.assertRaises(ValidationError):
            service.update_config(self.db, self.seed.project_id, {"color": "red"})

    def test_quality_config_provider_can_be_cleared(self) -> None:
        service = QualityEstimationService()
        self._enable_ai(service)

        cleared = service.update_config(
            self.db,
            self.seed.project_id,
            {"ai_evaluation_provider": None, "ai_evaluation_model": None},
        )

        self.assertIsNone(cleared["ai_evaluation_provider"])
        self.assertIsNone(cleared["ai_evaluation_model"])
        self.assertTrue(cleared["ai_evaluation_enabled"])
        with self.assertRaises(ValidationError):
            service.update_config(self.db, self.seed.project_id, {"flag_threshold": None})


if __name__ == "__main__":
    unittest.main()
