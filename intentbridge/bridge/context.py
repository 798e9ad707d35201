"""Shared mutable state of one bridge instance.

The pending-request table, the processor registry, the active response
handler and the set of in-flight fire-and-forget ids all live on a
`BridgeContext`. Transport, dispatcher and sink receive the same context,
so independent bridges (e.g. one per test) never share state.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Protocol

import structlog

from ..errors import ChannelClosedError
from .intent import IntentEntity, IntentType

logger = structlog.get_logger()

Processor = Callable[[IntentEntity], Awaitable[Any]]


class ResponseHandler(Protocol):
    """Consumer of fire-and-forget results."""

    def deliver_result(self, request_id: str, result: Any) -> None: ...

    def deliver_error(self, request_id: str, error: str) -> None: ...


@dataclass
class BridgeContext:
    pending: dict[str, asyncio.Future[Any]] = field(default_factory=dict)
    processors: dict[IntentType, Processor] = field(default_factory=dict)
    handler: Optional[ResponseHandler] = None
    active_intents: set[str] = field(default_factory=set)

    def reject_pending(self, exc: BaseException) -> int:
        """Fail every pending request with `exc` and empty the table.

        Returns:
            Number of pending requests that were rejected
        """
        rejected = 0
        pending = list(self.pending.items())
        self.pending.clear()
        for request_id, future in pending:
            if not future.done():
                future.set_exception(exc)
                rejected += 1
                logger.debug("pending_rejected", request_id=request_id, reason=str(exc))
        return rejected

    def teardown(self, reason: BaseException | None = None) -> int:
        """Reject pending requests and reset all registries."""
        rejected = self.reject_pending(reason or ChannelClosedError("Bridge context torn down"))
        self.processors.clear()
        self.active_intents.clear()
        self.handler = None
        return rejected
