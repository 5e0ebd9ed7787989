"""Composition root wiring services and handlers into the buses."""

from __future__ import annotations

import logging

from lokal.config import Settings, get_settings
from lokal.cqrs import messages
from lokal.cqrs.bus import Buses, CommandBus, QueryBus
from lokal.cqrs.handlers import LokalHandlers
from lokal.quality.ai_evaluator import OpenAIChatCompletionsClient, TextGenerationClient
from lokal.quality.circuit_breaker import CircuitBreaker
from lokal.services.quality import QualityEstimationService, TextClientFactory

logger = logging.getLogger(__name__)


def default_text_client_factory(settings: Settings) -> TextClientFactory:
    """Return a factory that builds provider clients from settings."""

    def factory(provider: str, model: str) -> TextGenerationClient | None:
        if provider.lower() != "openai":
            logger.warning("quality.ai_provider_unsupported provider=%s", provider)
            return None
        if not settings.openai_api_key:
            return None
        return OpenAIChatCompletionsClient(
            api_key=settings.openai_api_key,
            model=model,
            base_url=settings.openai_base_url,
            timeout_seconds=settings.openai_timeout_seconds,
        )

    return factory


def build_buses(
    settings: Settings | None = None,
    *,
    text_client_factory: TextClientFactory | None = None,
    quality_service: QualityEstimationService | None = None,
) -> Buses:
    """Register every handler once and freeze both registries."""

    settings = settings or get_settings()
    quality = quality_service or QualityEstimationService(
        text_client_factory=text_client_factory or default_text_client_factory(settings),
        circuit_breaker=CircuitBreaker(
            failure_threshold=settings.ai_circuit_failure_threshold,
            open_seconds=settings.ai_circuit_open_seconds,
        ),
        ai_max_retries=settings.ai_max_retries,
        ai_retry_backoff_seconds=settings.ai_retry_backoff_seconds,
    )
    handlers = LokalHandlers(settings=settings, quality=quality)

    commands = CommandBus()
    commands.register(messages.CreateBranch, handlers.create_branch)
    commands.register(messages.CreateTranslationKey, handlers.create_translation_key)
    commands.register(messages.UpdateTranslation, handlers.update_translation)
    commands.register(messages.MergeBranches, handlers.merge_branches)
    commands.register(messages.EvaluateQuality, handlers.evaluate_quality)
    commands.register(messages.EvaluateKeyQuality, handlers.evaluate_key_quality)
    commands.register(messages.QueueBatchEvaluation, handlers.queue_batch_evaluation)
    commands.register(messages.UpdateQualityConfig, handlers.update_quality_config)
    commands.freeze()

    queries = QueryBus()
    queries.register(messages.GetBranchDiff, handlers.get_branch_diff)
    queries.register(messages.GetCachedQualityScore, handlers.get_cached_quality_score)
    queries.register(messages.GetBranchQualitySummary, handlers.get_branch_quality_summary)
    queries.register(messages.GetKeyQualityIssues, handlers.get_key_quality_issues)
    queries.register(messages.GetQualityConfig, handlers.get_quality_config)
    queries.register(messages.ValidateIcuSyntax, handlers.validate_icu_syntax)
    queries.register(messages.ListProjectActivity, handlers.list_project_activity)
    queries.freeze()

    return Buses(commands=commands, queries=queries, quality=quality)
