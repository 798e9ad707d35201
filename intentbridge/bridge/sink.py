"""Single replaceable delivery target for fire-and-forget results."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

import structlog

from .context import BridgeContext, ResponseHandler

logger = structlog.get_logger()


class DeliveryOutcome(str, Enum):
    DELIVERED = "delivered"
    DROPPED = "dropped"


class ResponseSink:
    """Pushes results to the most recently registered handler.

    Deliveries made while no handler is registered are dropped, never
    buffered for a later handler.
    """

    def __init__(self, context: BridgeContext) -> None:
        self._context = context

    @property
    def handler(self) -> Optional[ResponseHandler]:
        return self._context.handler

    def set_handler(self, handler: ResponseHandler) -> None:
        """Replace the active handler unconditionally."""
        self._context.handler = handler
        logger.debug("response_handler_set", handler=type(handler).__name__)

    def deliver_result(self, request_id: str, result: Any) -> DeliveryOutcome:
        handler = self._context.handler
        if handler is None:
            logger.debug("delivery_dropped", request_id=request_id, kind="result")
            return DeliveryOutcome.DROPPED
        handler.deliver_result(request_id, result)
        return DeliveryOutcome.DELIVERED

    def deliver_error(self, request_id: str, error: str) -> DeliveryOutcome:
        handler = self._context.handler
        if handler is None:
            logger.debug("delivery_dropped", request_id=request_id, kind="error")
            return DeliveryOutcome.DROPPED
        handler.deliver_error(request_id, error)
        return DeliveryOutcome.DELIVERED
