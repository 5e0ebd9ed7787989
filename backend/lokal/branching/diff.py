"""Deterministic three-way classification of branch key changes.

Terminology is from the source branch's perspective when merging into target:

- added: key exists in source only.
- deleted: key exists in target only.
- modified: key exists on both sides with different values, and no language
  was changed independently on both sides since the common ancestor.
- conflict: at least one language differs between source and target and
  differs from the ancestor value on both sides.

Without an ancestor snapshot every differing key is ``modified``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

TranslationMap = dict[str, str]


@dataclass(slots=True)
class KeyChange:
    """Key present on only one side of the diff."""

    key: str
    translations: TranslationMap


@dataclass(slots=True)
class ModifiedChange:
    """Key present on both sides with differing, non-conflicting content."""

    key: str
    source: TranslationMap
    target: TranslationMap


@dataclass(slots=True)
class ConflictChange:
    """Key edited independently on both sides since the common ancestor."""

    key: str
    source: TranslationMap
    target: TranslationMap
    languages: list[str] = field(default_factory=list)


@dataclass(slots=True)
class BranchChanges:
    """Categorized output of one diff run."""

    added: list[KeyChange] = field(default_factory=list)
    modified: list[ModifiedChange] = field(default_factory=list)
    deleted: list[KeyChange] = field(default_factory=list)
    conflicts: list[ConflictChange] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.modified or self.deleted or self.conflicts)

    @property
    def total_changes(self) -> int:
        return len(self.added) + len(self.modified) + len(self.deleted) + len(self.conflicts)


def translations_equal(left: Mapping[str, str], right: Mapping[str, str]) -> bool:
    """Exact per-language comparison; a missing language never equals a present one."""

    if len(left) != len(right):
        return False
    return all(language in right and right[language] == value for language, value in left.items())


def classify_branch_changes(
    source: Mapping[str, Mapping[str, str]],
    target: Mapping[str, Mapping[str, str]],
    base: Mapping[str, Mapping[str, str]] | None = None,
) -> BranchChanges:
    """Classify keys of two branch snapshots into added/modified/deleted/conflicts."""

    changes = BranchChanges()

    for key_name in sorted(source):
        source_values = dict(source[key_name])
        if key_name not in target:
            changes.added.append(KeyChange(key=key_name, translations=source_values))
            continue
        target_values = dict(target[key_name])
        if translations_equal(source_values, target_values):
            continue

        conflicting = (
            _conflicting_languages(source_values, target_values, base.get(key_name) or {})
            if base is not None
            else []
        )
        if conflicting:
            changes.conflicts.append(
                ConflictChange(
                    key=key_name,
                    source=source_values,
                    target=target_values,
                    languages=conflicting,
                )
            )
        else:
            changes.modified.append(
                ModifiedChange(key=key_name, source=source_values, target=target_values)
            )

    for key_name in sorted(target):
        if key_name not in source:
            changes.deleted.append(KeyChange(key=key_name, translations=dict(target[key_name])))

    return changes


def merge_modified_values(
    source: Mapping[str, str],
    target: Mapping[str, str],
    base: Mapping[str, str] | None,
) -> TranslationMap:
    """Values a ``modified`` key should hold on the target after a merge.

    Languages the source left at the ancestor value keep the target value, so
    edits made only on the target survive. Without an ancestor the source wins.
    """

    if base is None:
        return dict(source)
    merged: TranslationMap = {}
    for language in sorted(set(source) | set(target)):
        source_value = source.get(language)
        value = target.get(language) if source_value == base.get(language) else source_value
        if value is not None:
            merged[language] = value
    return merged


def _conflicting_languages(
    source: Mapping[str, str],
    target: Mapping[str, str],
    base: Mapping[str, str],
) -> list[str]:
    languages = sorted(set(source) | set(target))
    conflicting: list[str] = []
    for language in languages:
        source_value = source.get(language)
        target_value = target.get(language)
        if source_value == target_value:
            continue
        base_value = base.get(language)
        if source_value != base_value and target_value != base_value:
            conflicting.append(language)
    return conflicting
