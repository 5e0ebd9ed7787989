"""Shared in-memory database setup and seed data for tests."""

from __future__ import annotations

import json
from dataclasses import dataclass

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from lokal.db.base import Base
from lokal.errors import EvaluationError
from lokal.models import GlossaryEntry, Project, ProjectLanguage, ProjectMember, Space, User
from lokal.quality.ai_evaluator import GeneratedText


def build_engine() -> tuple[Engine, sessionmaker]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine, sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@dataclass(slots=True)
class SeededProject:
    project_id: int
    space_id: int
    owner_id: int
    manager_id: int
    developer_id: int
    outsider_id: int


def seed_project(db: Session, *, slug: str = "demo", languages: tuple[str, ...] = ("en", "de")) -> SeededProject:
    """Create users, a project with ``languages`` (first is default), and one space."""

    users = {
        role: User(email=f"{role}@{slug}.test", name=role.title())
        for role in ("owner", "manager", "developer", "outsider")
    }
    db.add_all(users.values())
    db.flush()

    project = Project(name=slug.title(), slug=slug, default_language=languages[0])
    project.languages = [
        ProjectLanguage(code=code, name=code.upper(), is_default=index == 0)
        for index, code in enumerate(languages)
    ]
    project.members = [
        ProjectMember(user_id=users["owner"].id, role="OWNER"),
        ProjectMember(user_id=users["manager"].id, role="MANAGER"),
        ProjectMember(user_id=users["developer"].id, role="DEVELOPER"),
    ]
    db.add(project)
    db.flush()
    space = Space(project_id=project.id, name="Web", slug="web")
    db.add(space)
    db.commit()
    return SeededProject(
        project_id=project.id,
        space_id=space.id,
        owner_id=users["owner"].id,
        manager_id=users["manager"].id,
        developer_id=users["developer"].id,
        outsider_id=users["outsider"].id,
    )


def add_glossary_term(db: Session, project_id: int, source_term: str, language: str, target_term: str) -> None:
    db.add(
        GlossaryEntry(
            project_id=project_id,
            source_term=source_term,
            target_language=language,
            target_term=target_term,
        )
    )
    db.commit()


class StubTextClient:
    """Text-generation stand-in that records calls and replays a fixed reply."""

    def __init__(
        self,
        payload: dict | None = None,
        *,
        text: str | None = None,
        error: Exception | None = None,
        input_tokens: int = 120,
        output_tokens: int = 30,
    ) -> None:
        self.text = text if text is not None else json.dumps(payload or {})
        self.error = error
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.calls: list[tuple[str, str]] = []

    def generate_text(self, system_prompt: str, user_prompt: str) -> GeneratedText:
        self.calls.append((system_prompt, user_prompt))
        if self.error is not None:
            raise self.error
        return GeneratedText(text=self.text, input_tokens=self.input_tokens, output_tokens=self.output_tokens)


class SequenceTextClient(StubTextClient):
    """Replays ``replies`` in order, repeating the last one once exhausted."""

    def __init__(self, replies: list[str], **kwargs) -> None:  # noqa: ANN003
        super().__init__(text=replies[0], **kwargs)
        self.replies = list(replies)

    def generate_text(self, system_prompt: str, user_prompt: str) -> GeneratedText:
        self.text = self.replies[min(len(self.calls), len(self.replies) - 1)]
        return super().generate_text(system_prompt, user_prompt)


def stub_factory(client: StubTextClient | None):
    def factory(provider: str, model: str) -> StubTextClient | None:
        _ = provider, model
        return client

    return factory


def failing_client() -> StubTextClient:
    return StubTextClient(error=EvaluationError("provider unavailable"))
