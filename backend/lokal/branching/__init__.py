"""Branch diff classification and conflict resolution."""

from lokal.branching.diff import (
    BranchChanges,
    ConflictChange,
    KeyChange,
    ModifiedChange,
    TranslationMap,
    classify_branch_changes,
    translations_equal,
)
from lokal.branching.resolution import (
    ResolutionChoice,
    ResolutionSet,
    resolve_conflict_values,
)

__all__ = [
    "BranchChanges",
    "ConflictChange",
    "KeyChange",
    "ModifiedChange",
    "TranslationMap",
    "classify_branch_changes",
    "translations_equal",
    "ResolutionChoice",
    "ResolutionSet",
    "resolve_conflict_values",
]
