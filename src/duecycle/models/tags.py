"""
Category tags.

Tags form a hierarchy through ``parent_id`` only; children and descendants are
looked up through the tag catalog rather than stored on the tag.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator, model_validator


class Tag(BaseModel):
    """A category label attached to obligations, occurrences and budgets."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    parent_id: str | None = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Tag name cannot be empty")
        return value

    @model_validator(mode="after")
    def _not_own_parent(self) -> Tag:
        if self.parent_id is not None and self.parent_id == self.id:
            raise ValueError("A tag cannot be its own parent")
        return self

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def __str__(self) -> str:
        return self.name
