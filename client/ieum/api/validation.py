from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError as SchemaError

from ieum.core.errors import ValidationError

M = TypeVar("M", bound=BaseModel)


def validated(model: type[M], **fields: Any) -> M:
    """Build a request model, turning schema errors into ``ValidationError``."""
    try:
        return model(**fields)
    except SchemaError as e:
        first = e.errors()[0] if e.errors() else {}
        message = str(first.get("msg") or "Invalid input")
        # "Value error, <reason>" is how pydantic wraps ValueError messages
        message = message.removeprefix("Value error, ")
        raise ValidationError(message) from e
