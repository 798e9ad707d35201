from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field


class BaseMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Correlation id linking a request to its response")


class RequestMessage(BaseMessage):
    """Outbound request envelope sent to the host."""

    operation: str = Field(description="Host operation name")
    parameters: dict[str, Any] = Field(
        default_factory=dict, description="Operation parameters (opaque to the bridge)"
    )


class ResultMessage(BaseMessage):
    """Inbound success response."""

    result: Any = Field(default=None, description="Value produced by the host")


class ErrorResponseMessage(BaseMessage):
    """Inbound error response."""

    error: str = Field(description="Error text reported by the host")


InboundMessage = Union[ResultMessage, ErrorResponseMessage]


def parse_message(data: dict[str, Any]) -> InboundMessage:
    """Parse an inbound response from a dictionary.

    Args:
        data: Dictionary containing message data

    Returns:
        `ErrorResponseMessage` when an `error` key is present, otherwise
        `ResultMessage` when a `result` key is present

    Raises:
        ValueError: If the id is missing or the payload is neither a result
            nor an error
    """
    if not isinstance(data, dict):
        raise ValueError(f"Message must be a mapping, got {type(data).__name__}")
    if data.get("id") is None:
        raise ValueError("Message id is missing")

    if "error" in data:
        return ErrorResponseMessage(id=str(data["id"]), error=str(data["error"]))
    if "result" in data:
        return ResultMessage(id=str(data["id"]), result=data["result"])

    raise ValueError(f"Message {data['id']} carries neither result nor error")
