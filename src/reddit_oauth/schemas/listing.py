"""Schemas for paginated reddit listings."""

from typing import Any

from pydantic import Field

from .base import SchemaBase


class Thing(SchemaBase):
    """A single listing child (``t3`` link, ``t1`` comment, ...)."""

    kind: str
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def fullname(self) -> str | None:
        """The ``kind_id`` identifier used as a listing cursor."""
        name = self.data.get("name")
        if isinstance(name, str):
            return name
        thing_id = self.data.get("id")
        return f"{self.kind}_{thing_id}" if thing_id else None


class ListingData(SchemaBase):
    """Payload of a listing: the children plus the continuation cursors."""

    after: str | None = None
    before: str | None = None
    dist: int | None = None
    children: list[Thing] = Field(default_factory=list)


class Listing(SchemaBase):
    """``{"kind": "Listing", "data": {...}}`` envelope."""

    kind: str = "Listing"
    data: ListingData

    @property
    def after(self) -> str | None:
        """Cursor of the next page; None at the end of the listing."""
        return self.data.after

    @property
    def children(self) -> list[Thing]:
        return self.data.children
