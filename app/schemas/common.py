"""Common Pydantic request/response schema definitions.

Includes the camelCase base model, the response envelope helpers, and the
pagination blocks shared across API domains.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema serialized as camelCase JSON.

    Requests accept both camelCase and snake_case field names.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# === Pagination ===

class PaginationMeta(CamelModel):
    """Pagination metadata block.

    Attributes:
        page: Current page, 1-indexed
        limit: Items per page
        total: Total item count
        total_pages: ceil(total / limit)
        has_next: Whether a later page exists
        has_prev: Whether an earlier page exists
    """

    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class PaginatedData(CamelModel):
    """Paginated list payload placed in the envelope's ``data`` field."""

    items: list[Any]
    pagination: PaginationMeta


class MessageResponse(CamelModel):
    """Simple message response schema."""

    message: str


# === Envelope ===

def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def success_response(data: Any = None, message: str = "OK") -> dict[str, Any]:
    """Wrap a payload in the ``{success, message, data, timestamp}`` envelope."""
    return {
        "success": True,
        "message": message,
        "data": data,
        "timestamp": _timestamp(),
    }


def error_response(message: str, error: str, details: Any = None) -> dict[str, Any]:
    """Build the ``{success: false, message, error, timestamp}`` envelope."""
    body: dict[str, Any] = {
        "success": False,
        "message": message,
        "error": error,
        "timestamp": _timestamp(),
    }
    if details is not None:
        body["details"] = details
    return body
