"""Type-routed command and query buses."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from time import perf_counter
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lokal.cqrs.messages import Command, Query
from lokal.errors import LokalError

if TYPE_CHECKING:
    from lokal.services.quality import QualityEstimationService

logger = logging.getLogger(__name__)

Handler = Callable[[Session, Any], Any]


class _MessageBus:
    kind = "message"
    message_base: type = object

    def __init__(self) -> None:
        self._handlers: dict[type, Handler] = {}
        self._frozen = False

    def register(self, message_type: type, handler: Handler) -> None:
        if self._frozen:
            raise RuntimeError(f"{self.kind} bus is frozen; cannot register {message_type.__name__}")
        if not issubclass(message_type, self.message_base):
            raise TypeError(f"{message_type.__name__} is not a {self.kind}")
        if message_type in self._handlers:
            raise ValueError(f"Handler already registered for {message_type.__name__}")
        self._handlers[message_type] = handler

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def handles(self, message_type: type) -> bool:
        return message_type in self._handlers

    def dispatch(self, db: Session, message: Any) -> Any:
        """Run the handler registered for ``type(message)``."""

        message_name = type(message).__name__
        handler = self._handlers.get(type(message))
        if handler is None:
            raise LokalError(f"No {self.kind} handler registered for {message_name}")

        started_at = perf_counter()
        try:
            result = handler(db, message)
        except LokalError as exc:
            logger.info(
                "cqrs.%s.rejected message=%s actor_id=%s code=%s",
                self.kind,
                message_name,
                getattr(message, "actor_id", None),
                exc.code,
            )
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("cqrs.%s.database_error message=%s", self.kind, message_name)
            raise LokalError("Database operation failed") from exc

        logger.debug(
            "cqrs.%s.dispatched message=%s duration_ms=%.2f",
            self.kind,
            message_name,
            (perf_counter() - started_at) * 1000,
        )
        return result


class CommandBus(_MessageBus):
    kind = "command"
    message_base = Command

    def execute(self, db: Session, command: Command) -> Any:
        return self.dispatch(db, command)


class QueryBus(_MessageBus):
    kind = "query"
    message_base = Query

    def ask(self, db: Session, query: Query) -> Any:
        return self.dispatch(db, query)


@dataclass(frozen=True, slots=True)
class Buses:
    commands: CommandBus
    queries: QueryBus
    # Shared with background jobs scheduled outside the buses.
    quality: QualityEstimationService
