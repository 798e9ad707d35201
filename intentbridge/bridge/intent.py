from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class IntentType(str, Enum):
    """Operation types whose completion is delivered through the response sink."""

    REQUEST_CREDENTIALS = "REQUEST_CREDENTIALS"
    IMPORT_CREDENTIALS = "IMPORT_CREDENTIALS"


class IntentEntity(BaseModel):
    """A completed host intent, consumed once by the dispatcher."""

    id: str = Field(description="Caller-supplied correlation id")
    type: IntentType = Field(description="Operation type tag")
    request_payload: dict[str, Any] = Field(
        default_factory=dict, description="Caller context (caller identity, request id)"
    )
    response_payload: Optional[Any] = Field(
        default=None, description="Raw host result, None when the flow was cancelled"
    )
