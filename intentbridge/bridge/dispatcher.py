"""Routes completed intents through per-type processors to the response sink."""

from __future__ import annotations

from enum import Enum
from typing import Optional

import structlog

from ..errors import DuplicateRequestError
from .context import BridgeContext, Processor
from .intent import IntentEntity, IntentType
from .sink import DeliveryOutcome, ResponseSink

logger = structlog.get_logger()


class DispatchOutcome(str, Enum):
    DELIVERED = "delivered"
    DROPPED_NO_HANDLER = "dropped_no_handler"
    DROPPED_NO_PROCESSOR = "dropped_no_processor"


def _outcome(delivery: DeliveryOutcome) -> DispatchOutcome:
    if delivery is DeliveryOutcome.DELIVERED:
        return DispatchOutcome.DELIVERED
    return DispatchOutcome.DROPPED_NO_HANDLER


class IntentDispatcher:
    """Registry from intent type to processor, plus in-flight id tracking."""

    def __init__(self, context: BridgeContext, sink: ResponseSink) -> None:
        self._context = context
        self._sink = sink

    def register_processor(self, intent_type: IntentType, processor: Processor) -> None:
        """Install or replace the processor for `intent_type`."""
        self._context.processors[intent_type] = processor

    def processor_for(self, intent_type: IntentType) -> Optional[Processor]:
        return self._context.processors.get(intent_type)

    def reserve(self, request_id: str) -> None:
        """Mark a caller-supplied id as in flight.

        Raises:
            DuplicateRequestError: If the id is already in flight
        """
        if request_id in self._context.active_intents:
            raise DuplicateRequestError(request_id)
        self._context.active_intents.add(request_id)

    def release(self, request_id: str) -> None:
        self._context.active_intents.discard(request_id)

    def is_active(self, request_id: str) -> bool:
        return request_id in self._context.active_intents

    async def dispatch(self, intent: IntentEntity) -> DispatchOutcome:
        """Run the processor for `intent.type` and deliver its outcome.

        Intents without a registered processor are dropped silently; a
        processor failure is delivered as an error for `intent.id`.
        """
        processor = self._context.processors.get(intent.type)
        if processor is None:
            logger.debug("intent_dropped_no_processor", request_id=intent.id, type=intent.type.value)
            return DispatchOutcome.DROPPED_NO_PROCESSOR

        try:
            result = await processor(intent)
        except Exception as e:
            logger.warning(
                "intent_processor_error",
                request_id=intent.id,
                type=intent.type.value,
                error=str(e),
            )
            return _outcome(self._sink.deliver_error(intent.id, str(e)))

        outcome = _outcome(self._sink.deliver_result(intent.id, result))
        logger.debug("intent_dispatched", request_id=intent.id, outcome=outcome.value)
        return outcome

    def fail(self, request_id: str, error: str) -> DispatchOutcome:
        """Deliver an error for a flow that never produced an intent."""
        return _outcome(self._sink.deliver_error(request_id, error))
