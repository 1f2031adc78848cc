"""Base schema class for reddit API payloads."""

from typing import Any, Self

from pydantic import BaseModel, ConfigDict, ValidationError


class SchemaBase(BaseModel):
    """Base class for all Pydantic schemas parsed from reddit JSON bodies."""

    model_config = ConfigDict(
        extra="ignore",
        str_strip_whitespace=True,
    )

    @classmethod
    def try_validate(cls, obj: Any) -> Self | None:
        """
        Validate a decoded JSON body, returning None instead of raising.

        Args:
            obj: Decoded JSON value (any type)

        Returns:
            Schema instance, or None if the value does not have the expected shape
        """
        try:
            return cls.model_validate(obj)
        except ValidationError:
            return None
