"""Tests for AI evaluation retries and the circuit breaker."""

from __future__ import annotations

import json
import unittest

from helpers import SequenceTextClient, StubTextClient, failing_client
from lokal.errors import EvaluationError
from lokal.quality.ai_evaluator import AIEvaluator
from lokal.quality.circuit_breaker import CircuitBreaker

_VALID_REPLY = json.dumps({"accuracy": 90, "fluency": 80, "terminology": 80, "issues": []})


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class CircuitBreakerTests(unittest.TestCase):
    def test_opens_at_threshold_and_closes_after_open_period(self) -> None:
        clock = FakeClock()
        breaker = CircuitBreaker(failure_threshold=2, open_seconds=30, reset_seconds=60, clock=clock)

        breaker.record_failure()
        self.assertTrue(breaker.can_attempt())
        breaker.record_failure()
        self.assertFalse(breaker.can_attempt())
        self.assertEqual(breaker.remaining_open_seconds(), 30)

        clock.now += 31
        self.assertTrue(breaker.can_attempt())
        self.assertEqual(breaker.failure_count, 0)

    def test_success_clears_failures(self) -> None:
        breaker = CircuitBreaker(failure_threshold=2, clock=FakeClock())

        breaker.record_failure()
        breaker.record_success()
        breaker.record_failure()

        self.assertTrue(breaker.can_attempt())
        self.assertEqual(breaker.failure_count, 1)

    def test_old_failures_are_forgotten(self) -> None:
        clock = FakeClock()
        breaker = CircuitBreaker(failure_threshold=2, reset_seconds=60, clock=clock)

        breaker.record_failure()
        clock.now += 61
        breaker.record_failure()

        self.assertTrue(breaker.can_attempt())
        self.assertEqual(breaker.failure_count, 1)

    def test_threshold_must_be_positive(self) -> None:
        with self.assertRaises(ValueError):
            CircuitBreaker(failure_threshold=0)


class AIEvaluatorRetryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.delays: list[float] = []

    def _evaluator(self, client: StubTextClient, **kwargs) -> AIEvaluator:  # noqa: ANN003
        return AIEvaluator(
            client,
            provider="openai",
            model="gpt-4o-mini",
            backoff_seconds=0.5,
            sleep=self.delays.append,
            **kwargs,
        )

    def _evaluate(self, evaluator: AIEvaluator):  # noqa: ANN202
        return evaluator.evaluate(
            key_name="greeting",
            source_text="Hello",
            source_language="en",
            target_text="Hallo",
            target_language="de",
            format_score=100,
        )

    def test_invalid_reply_is_retried_with_parse_error(self) -> None:
        client = SequenceTextClient(["Sure! Here you go.", _VALID_REPLY], input_tokens=100, output_tokens=20)
        breaker = CircuitBreaker(failure_threshold=1)

        result = self._evaluate(self._evaluator(client, circuit_breaker=breaker))

        self.assertEqual(len(client.calls), 2)
        self.assertNotIn("Previous response was invalid", client.calls[0][1])
        self.assertIn("Previous response was invalid: No JSON object found", client.calls[1][1])
        self.assertEqual(self.delays, [0.5])
        self.assertEqual((result.input_tokens, result.output_tokens), (200, 40))
        self.assertEqual(result.accuracy, 90)
        self.assertTrue(breaker.can_attempt())

    def test_exhausted_retries_back_off_exponentially(self) -> None:
        client = StubTextClient(text="{not json}")
        breaker = CircuitBreaker(failure_threshold=5)

        with self.assertRaises(EvaluationError) as raised:
            self._evaluate(self._evaluator(client, circuit_breaker=breaker, max_retries=3))

        self.assertIn("after 4 attempts", raised.exception.message)
        self.assertEqual(len(client.calls), 4)
        self.assertEqual(self.delays, [0.5, 1.0, 2.0])
        self.assertEqual(breaker.failure_count, 1)

    def test_provider_error_is_not_retried(self) -> None:
        client = failing_client()
        breaker = CircuitBreaker(failure_threshold=5)

        with self.assertRaises(EvaluationError):
            self._evaluate(self._evaluator(client, circuit_breaker=breaker))

        self.assertEqual(len(client.calls), 1)
        self.assertEqual(self.delays, [])
        self.assertEqual(breaker.failure_count, 1)

    def test_open_circuit_skips_provider_call(self) -> None:
        client = failing_client()
        evaluator = self._evaluator(client, circuit_breaker=CircuitBreaker(failure_threshold=2, open_seconds=60))

        for _ in range(2):
            with self.assertRaises(EvaluationError):
                self._evaluate(evaluator)
        with self.assertRaises(EvaluationError) as raised:
            self._evaluate(evaluator)

        self.assertEqual(len(client.calls), 2)
        self.assertIn("circuit is open", raised.exception.message)


if __name__ == "__main__":
    unittest.main()
