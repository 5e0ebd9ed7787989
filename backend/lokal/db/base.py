"""SQLAlchemy metadata registry import for Alembic."""

from lokal.models import (
    ActivityEvent,
    Branch,
    GlossaryEntry,
    Project,
    ProjectLanguage,
    ProjectMember,
    QualityScoringConfig,
    Space,
    Translation,
    TranslationKey,
    TranslationQualityScore,
    User,
)
from lokal.models.base import Base

__all__ = [
    "Base",
    "User",
    "Project",
    "ProjectLanguage",
    "ProjectMember",
    "Space",
    "Branch",
    "TranslationKey",
    "Translation",
    "TranslationQualityScore",
    "QualityScoringConfig",
    "GlossaryEntry",
    "ActivityEvent",
]
