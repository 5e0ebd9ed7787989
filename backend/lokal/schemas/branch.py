"""Branch diff and merge schemas."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

if TYPE_CHECKING:
    from lokal.services.diff import BranchDiff


class BranchCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    source_branch_id: int | None = Field(default=None, ge=1)


class BranchRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    space_id: int
    name: str
    slug: str
    is_default: bool
    source_branch_id: int | None
    version: int


class BranchRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    version: int


class DiffRequest(BaseModel):
    target_branch_id: int = Field(ge=1)


class DiffEntry(BaseModel):
    """Key present on only one side."""

    model_config = ConfigDict(from_attributes=True)

    key: str
    translations: dict[str, str]


class ModifiedEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str
    source: dict[str, str]
    target: dict[str, str]


class ConflictEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str
    source: dict[str, str]
    target: dict[str, str]
    languages: list[str]


class BranchDiffResult(BaseModel):
    source: BranchRef
    target: BranchRef
    added: list[DiffEntry]
    modified: list[ModifiedEntry]
    deleted: list[DiffEntry]
    conflicts: list[ConflictEntry]

    @classmethod
    def from_diff(cls, diff: BranchDiff) -> "BranchDiffResult":
        changes = diff.changes
        return cls(
            source=BranchRef.model_validate(diff.source),
            target=BranchRef.model_validate(diff.target),
            added=[DiffEntry.model_validate(item) for item in changes.added],
            modified=[ModifiedEntry.model_validate(item) for item in changes.modified],
            deleted=[DiffEntry.model_validate(item) for item in changes.deleted],
            conflicts=[ConflictEntry.model_validate(item) for item in changes.conflicts],
        )


class Resolution(BaseModel):
    """Choice for one conflicting key: a side, or a custom per-language map."""

    key: str = Field(min_length=1)
    resolution: Union[Literal["source", "target"], dict[str, str]]

    @model_validator(mode="after")
    def validate_custom_map(self) -> "Resolution":
        if isinstance(self.resolution, dict) and not self.resolution:
            raise ValueError("Custom resolution must contain at least one language.")
        return self


class MergeRequest(BaseModel):
    target_branch_id: int = Field(ge=1)
    resolutions: list[Resolution] = Field(default_factory=list)
    expected_target_version: int | None = Field(default=None, ge=1)
    delete_removed_keys: bool = False

    @model_validator(mode="after")
    def validate_unique_keys(self) -> "MergeRequest":
        keys = [item.key for item in self.resolutions]
        duplicates = sorted({key for key in keys if keys.count(key) > 1})
        if duplicates:
            raise ValueError(f"Duplicate resolutions for keys: {', '.join(duplicates)}")
        return self

    def resolution_map(self) -> dict[str, Literal["source", "target"] | dict[str, str]]:
        return {item.key: item.resolution for item in self.resolutions}


class MergeResult(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    success: bool
    merged: int
    added: int
    modified: int
    deleted: int
    conflicts_resolved: int
    target_version: int
