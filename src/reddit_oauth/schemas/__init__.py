"""Pydantic schemas for reddit API payloads."""

from .base import SchemaBase
from .listing import Listing, ListingData, Thing
from .oauth import TokenResponse

__all__ = [
    "Listing",
    "ListingData",
    "SchemaBase",
    "Thing",
    "TokenResponse",
]
