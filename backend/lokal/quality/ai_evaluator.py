"""MQM-style AI evaluation of a single translation."""

from __future__ import annotations

import json
import logging
import math
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from time import perf_counter
from typing import Any, Literal, Protocol, Sequence
from urllib import error as urllib_error
from urllib import request as urllib_request

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from lokal.errors import EvaluationError
from lokal.quality.checks import GlossaryTerm, QualityIssue
from lokal.quality.circuit_breaker import CircuitBreaker
from lokal.quality.scoring import calculate_combined_score

logger = logging.getLogger(__name__)

MQM_PROMPT_VERSION = "mqm.v1"
_PROMPT_FILES: dict[str, Path] = {
    "mqm.v1": Path(__file__).resolve().parent / "prompts" / "mqm_v1.txt",
}
_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_MQM_SEVERITIES = {"critical": "error", "major": "warning", "minor": "info"}


@dataclass(slots=True)
class GeneratedText:
    text: str
    input_tokens: int = 0
    output_tokens: int = 0


class TextGenerationClient(Protocol):
    """Protocol for pluggable text-generation backends."""

    def generate_text(self, system_prompt: str, user_prompt: str) -> GeneratedText:
        """Return the model reply for one system/user prompt pair."""


@dataclass(slots=True)
class OpenAIChatCompletionsClient:
    """Minimal OpenAI Chat Completions client using stdlib HTTP."""

    api_key: str
    model: str
    base_url: str = "https://api.openai.com/v1"
    timeout_seconds: int = 60

    def generate_text(self, system_prompt: str, user_prompt: str) -> GeneratedText:
        payload = {
            "model": self.model,
            "temperature": 0,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        url = f"{self.base_url.rstrip('/')}/chat/completions"
        req = urllib_request.Request(
            url=url,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )

        try:
            with urllib_request.urlopen(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read().decode("utf-8")
        except urllib_error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise EvaluationError(f"OpenAI HTTP {exc.code}: {detail}") from exc
        except urllib_error.URLError as exc:
            raise EvaluationError(f"OpenAI request failed: {exc.reason}") from exc

        try:
            decoded = json.loads(raw)
            message = decoded["choices"][0]["message"]
            refusal = message.get("refusal")
            if isinstance(refusal, str) and refusal.strip():
                raise EvaluationError(f"OpenAI refused evaluation request: {refusal.strip()}")
            content = message["content"]
            if not isinstance(content, str):
                raise TypeError("OpenAI response content is not a string")
            usage = decoded.get("usage") or {}
            return GeneratedText(
                text=content,
                input_tokens=int(usage.get("prompt_tokens") or 0),
                output_tokens=int(usage.get("completion_tokens") or 0),
            )
        except EvaluationError:
            raise
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise EvaluationError("OpenAI returned an unexpected response") from exc


@lru_cache(maxsize=4)
def get_mqm_system_prompt(version: str = MQM_PROMPT_VERSION) -> str:
    prompt_file = _PROMPT_FILES.get(version)
    if prompt_file is None:
        raise EvaluationError(f"Evaluation prompt version is not registered: {version}")
    try:
        prompt_text = prompt_file.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise EvaluationError(f"Failed to load evaluation prompt file: {prompt_file}") from exc
    if not prompt_text:
        raise EvaluationError(f"Evaluation prompt file is empty: {prompt_file}")
    return prompt_text


def build_mqm_user_prompt(
    *,
    key_name: str,
    source_text: str,
    source_language: str,
    target_text: str,
    target_language: str,
    glossary: Sequence[GlossaryTerm] = (),
) -> str:
    lines = [
        f"Key: {key_name}",
        f"Source ({source_language}): {source_text}",
        f"Target ({target_language}): {target_text}",
    ]
    if glossary:
        lines.append("<glossary>")
        lines.extend(f"{term.source_term} => {term.target_term}" for term in glossary)
        lines.append("</glossary>")
    lines.append("Evaluate the target translation and return the JSON object.")
    return "\n".join(lines)


class _RawMQMIssue(BaseModel):
    type: Literal["accuracy", "fluency", "terminology"]
    severity: Literal["critical", "major", "minor"]
    message: str


class _RawMQMPayload(BaseModel):
    accuracy: float = Field(ge=0, le=100)
    fluency: float = Field(ge=0, le=100)
    terminology: float = Field(ge=0, le=100)
    issues: list[_RawMQMIssue] = Field(default_factory=list)


@dataclass(slots=True)
class MQMResult:
    accuracy: int
    fluency: int
    terminology: int
    issues: list[QualityIssue] = field(default_factory=list)


def parse_mqm_response(text: str) -> MQMResult:
    """Extract and validate the JSON object from a model reply."""

    match = _JSON_OBJECT_RE.search(text or "")
    if match is None:
        raise EvaluationError("No JSON object found in AI response")
    try:
        raw: Any = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise EvaluationError("AI response is not valid JSON") from exc
    try:
        payload = _RawMQMPayload.model_validate(raw)
    except PydanticValidationError as exc:
        raise EvaluationError(f"AI response failed validation: {exc}") from exc

    issues = [
        QualityIssue(
            type=f"ai_{item.type}",
            severity=_MQM_SEVERITIES[item.severity],
            message=item.message.strip(),
        )
        for item in payload.issues
    ]
    return MQMResult(
        accuracy=round(payload.accuracy),
        fluency=round(payload.fluency),
        terminology=round(payload.terminology),
        issues=issues,
    )


@dataclass(slots=True)
class AIEvaluation:
    score: int
    accuracy: int
    fluency: int
    terminology: int
    format_score: int
    issues: list[QualityIssue]
    provider: str
    model: str
    input_tokens: int
    output_tokens: int


class AIEvaluator:
    """Scores a translation with a text-generation model and combines it with the format score.

    Replies that do not parse as the expected JSON are retried with the parse
    error appended to the prompt, waiting ``backoff_seconds * 2**n`` between
    attempts. Exhausted retries and provider errors count against the
    circuit breaker; while it is open no call is made.
    """

    def __init__(
        self,
        client: TextGenerationClient,
        *,
        provider: str,
        model: str,
        circuit_breaker: CircuitBreaker | None = None,
        max_retries: int = 2,
        backoff_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self.provider = provider
        self.model = model
        self._circuit_breaker = circuit_breaker
        self.max_retries = max(0, max_retries)
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    def evaluate(
        self,
        *,
        key_name: str,
        source_text: str,
        source_language: str,
        target_text: str,
        target_language: str,
        format_score: int,
        glossary: Sequence[GlossaryTerm] = (),
    ) -> AIEvaluation:
        breaker = self._circuit_breaker
        if breaker is not None and not breaker.can_attempt():
            raise EvaluationError(
                f"AI evaluation circuit is open; retry after {math.ceil(breaker.remaining_open_seconds())}s"
            )

        started_at = perf_counter()
        user_prompt = build_mqm_user_prompt(
            key_name=key_name,
            source_text=source_text,
            source_language=source_language,
            target_text=target_text,
            target_language=target_language,
            glossary=glossary,
        )
        input_tokens = 0
        output_tokens = 0
        last_error: EvaluationError | None = None
        result: MQMResult | None = None
        attempts = self.max_retries + 1
        for attempt in range(attempts):
            if attempt:
                self._sleep(self.backoff_seconds * 2 ** (attempt - 1))
            prompt = user_prompt
            if last_error is not None:
                prompt = f"{user_prompt}\n\nIMPORTANT: Return valid JSON only. Previous response was invalid: {last_error}"
            generated = self._generate(prompt)
            input_tokens += generated.input_tokens
            output_tokens += generated.output_tokens
            try:
                result = parse_mqm_response(generated.text)
            except EvaluationError as exc:
                last_error = exc
                logger.warning(
                    "quality.ai_evaluate.invalid_reply attempt=%s/%s error=%s",
                    attempt + 1,
                    attempts,
                    exc,
                )
                continue
            break

        if result is None:
            self._record_failure()
            raise EvaluationError(f"No valid AI reply after {attempts} attempts: {last_error}")
        if breaker is not None:
            breaker.record_success()

        score = calculate_combined_score(
            accuracy=result.accuracy,
            fluency=result.fluency,
            terminology=result.terminology,
            format_score=format_score,
        )
        logger.info(
            "quality.ai_evaluate.completed provider=%s model=%s score=%s attempts=%s input_tokens=%s output_tokens=%s duration_ms=%.2f",
            self.provider,
            self.model,
            score,
            attempt + 1,
            input_tokens,
            output_tokens,
            (perf_counter() - started_at) * 1000,
        )
        return AIEvaluation(
            score=score,
            accuracy=result.accuracy,
            fluency=result.fluency,
            terminology=result.terminology,
            format_score=format_score,
            issues=result.issues,
            provider=self.provider,
            model=self.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )

    def _generate(self, user_prompt: str) -> GeneratedText:
        try:
            return self._client.generate_text(get_mqm_system_prompt(), user_prompt)
        except EvaluationError:
            self._record_failure()
            raise
        except Exception as exc:
            self._record_failure()
            raise EvaluationError(f"AI provider call failed: {exc}") from exc

    def _record_failure(self) -> None:
        if self._circuit_breaker is not None:
            self._circuit_breaker.record_failure()
