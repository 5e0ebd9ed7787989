"""Conflict resolution state and per-key value selection."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Literal, Union

from lokal.branching.diff import ConflictChange, TranslationMap
from lokal.errors import ValidationError

ResolutionChoice = Union[Literal["source", "target"], dict[str, str]]
CustomFallback = Literal["reject", "source", "target"]


class ResolutionSet:
    """Mutable per-key resolution choices collected before a merge is submitted."""

    def __init__(self, initial: Mapping[str, ResolutionChoice] | None = None) -> None:
        self._choices: dict[str, ResolutionChoice] = {}
        for key, choice in (initial or {}).items():
            self.set(key, choice)

    def set(self, key: str, choice: ResolutionChoice) -> None:
        """Add or replace the resolution for one key."""

        self._choices[key] = _validate_choice(key, choice)

    def remove(self, key: str) -> None:
        self._choices.pop(key, None)

    def get(self, key: str) -> ResolutionChoice | None:
        return self._choices.get(key)

    def unresolved(self, conflicts: Iterable[ConflictChange]) -> list[str]:
        """Return conflicting keys that still lack a resolution."""

        return [conflict.key for conflict in conflicts if conflict.key not in self._choices]

    def all_resolved(self, conflicts: Iterable[ConflictChange]) -> bool:
        return not self.unresolved(conflicts)

    def __len__(self) -> int:
        return len(self._choices)

    def __iter__(self) -> Iterator[str]:
        return iter(self._choices)

    def __contains__(self, key: object) -> bool:
        return key in self._choices


def resolve_conflict_values(
    conflict: ConflictChange,
    choice: ResolutionChoice,
    *,
    fallback: CustomFallback = "reject",
) -> TranslationMap:
    """Return the final per-language values for a resolved conflict.

    A custom map must cover every language present on either side of the
    conflict unless ``fallback`` names the side used to fill the gaps.
    """

    if choice == "source":
        return dict(conflict.source)
    if choice == "target":
        return dict(conflict.target)

    custom = dict(choice)
    missing = sorted((set(conflict.source) | set(conflict.target)) - set(custom))
    if not missing:
        return custom
    if fallback == "reject":
        raise ValidationError(
            f"Custom resolution for '{conflict.key}' is missing languages: {', '.join(missing)}",
            details={"key": conflict.key, "missing_languages": missing},
        )
    fill_side = conflict.source if fallback == "source" else conflict.target
    for language in missing:
        if language in fill_side:
            custom[language] = fill_side[language]
    return custom


def _validate_choice(key: str, choice: ResolutionChoice) -> ResolutionChoice:
    if isinstance(choice, str):
        if choice not in ("source", "target"):
            raise ValidationError(f"Unknown resolution '{choice}' for key '{key}'")
        return choice
    if not isinstance(choice, Mapping) or not choice:
        raise ValidationError(f"Custom resolution for '{key}' must be a non-empty language map")
    cleaned: dict[str, str] = {}
    for language, value in choice.items():
        if not isinstance(language, str) or not language.strip() or not isinstance(value, str):
            raise ValidationError(f"Custom resolution for '{key}' has an invalid entry")
        cleaned[language.strip()] = value
    return cleaned
