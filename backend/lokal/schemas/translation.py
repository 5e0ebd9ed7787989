"""Translation key and value schemas."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class TranslationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    key_id: int
    language: str
    value: str
    status: str


class KeyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=512)
    translations: dict[str, str] = Field(default_factory=dict)


class KeyRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    branch_id: int
    name: str
    translations: list[TranslationRead]


class TranslationUpdate(BaseModel):
    value: str
    status: Literal["PENDING", "APPROVED", "REJECTED"] | None = None
