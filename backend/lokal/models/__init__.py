"""ORM models package exports."""

from lokal.models.activity_event import ActivityEvent
from lokal.models.branch import Branch
from lokal.models.glossary_entry import GlossaryEntry
from lokal.models.project import Project, ProjectLanguage, ProjectMember
from lokal.models.quality_config import QualityScoringConfig
from lokal.models.quality_score import TranslationQualityScore
from lokal.models.space import Space
from lokal.models.translation import Translation
from lokal.models.translation_key import TranslationKey
from lokal.models.user import User

__all__ = [
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
