"""Direct-return request/response correlation over a messaging channel.

Maps outbound requests to pending futures keyed by a generated correlation
id, and routes inbound responses back to resolve or reject them.
"""

from __future__ import annotations

import asyncio
import contextlib
import uuid
from typing import Any, Optional, Protocol

import structlog

from ..config import BridgeConfig
from ..errors import ChannelClosedError, HostError, ProtocolError
from ..protocol.messages import (
    ErrorResponseMessage,
    InboundMessage,
    RequestMessage,
    ResultMessage,
)
from .context import BridgeContext

logger = structlog.get_logger()


class Channel(Protocol):
    async def send_message(self, message: RequestMessage) -> None: ...

    async def receive_message(self) -> InboundMessage: ...

    async def close(self) -> None: ...


class BridgeTransport:
    """
    Correlates host requests with their responses.
    - send(operation, parameters) -> result: sends a request envelope and
      suspends until the matching response arrives.
    - route_response(message) -> bool: resolves the pending request; False if unmatched.
    """

    def __init__(
        self,
        channel: Channel,
        context: BridgeContext | None = None,
        config: BridgeConfig | None = None,
    ) -> None:
        self._channel = channel
        self._context = context or BridgeContext()
        self._config = config or BridgeConfig()
        self._receive_task: Optional[asyncio.Task[None]] = None
        self._closed = False
        self._pending_hwm: int = 0

    @property
    def context(self) -> BridgeContext:
        return self._context

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_count(self) -> int:
        return len(self._context.pending)

    def pending_high_water_mark(self) -> int:
        return self._pending_hwm

    async def start(self) -> None:
        """Start the background receive loop."""
        if self._closed:
            raise ChannelClosedError("Transport closed")
        if not self._receive_task:
            self._receive_task = asyncio.create_task(self._receive_loop())

    async def send(self, operation: str, parameters: dict[str, Any] | None = None) -> Any:
        """Send a request to the host and wait for its response.

        Raises:
            HostError: If the host answered with an error
            ChannelClosedError: If the channel is or becomes closed
            asyncio.TimeoutError: Only when `request_timeout` is configured
        """
        if self._closed:
            raise ChannelClosedError("Transport closed")

        message = RequestMessage(
            id=str(uuid.uuid4()),
            operation=operation,
            parameters=dict(parameters or {}),
        )
        pending = self._context.pending
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        # Registered before writing so a response can never arrive unmatched
        pending[message.id] = future
        if len(pending) > self._pending_hwm:
            self._pending_hwm = len(pending)

        logger.debug("bridge_send", operation=operation, request_id=message.id)
        try:
            await self._channel.send_message(message)
        except (ProtocolError, ConnectionError) as e:
            pending.pop(message.id, None)
            raise ChannelClosedError(f"Failed to send {operation}: {e}") from e
        except BaseException:
            pending.pop(message.id, None)
            raise

        try:
            if self._config.request_timeout is not None:
                return await asyncio.wait_for(future, timeout=self._config.request_timeout)
            return await future
        except (asyncio.CancelledError, asyncio.TimeoutError):
            # Only drop our own record; a late response is then ignored as unmatched
            if pending.get(message.id) is future:
                del pending[message.id]
            raise

    def route_response(self, message: InboundMessage) -> bool:
        future = self._context.pending.pop(message.id, None)
        if future is None:
            logger.debug("bridge_unmatched_response", request_id=message.id)
            return False
        if future.done():
            return False

        if isinstance(message, ErrorResponseMessage):
            logger.debug("bridge_rejected", request_id=message.id, error=message.error)
            future.set_exception(HostError(message.error, request_id=message.id))
        else:
            logger.debug("bridge_resolved", request_id=message.id)
            future.set_result(message.result)
        return True

    def receive_result(self, request_id: str, result: Any) -> bool:
        """Host-side entry point for a success response."""
        return self.route_response(ResultMessage(id=str(request_id), result=result))

    def receive_error(self, request_id: str, error: str) -> bool:
        """Host-side entry point for an error response."""
        return self.route_response(ErrorResponseMessage(id=str(request_id), error=str(error)))

    async def _receive_loop(self) -> None:
        """Background task routing inbound responses until the channel ends."""
        reason: BaseException = ChannelClosedError("Channel closed")
        try:
            while not self._closed:
                try:
                    message = await self._channel.receive_message()
                except ValueError as e:
                    logger.warning("bridge_malformed_response", error=str(e))
                    continue
                self.route_response(message)
        except ProtocolError as e:
            logger.info("bridge_channel_closed", error=str(e))
            reason = ChannelClosedError(f"Channel closed: {e}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("bridge_receive_loop_error", error=str(e))
            reason = ChannelClosedError(f"Channel failed: {e}")
        finally:
            self._closed = True
            rejected = self._context.reject_pending(reason)
            if rejected:
                logger.warning("bridge_pending_rejected", count=rejected, reason=str(reason))

    async def close(self) -> None:
        """Stop receiving, close the channel and reject pending requests."""
        if self._closed and self._receive_task is None:
            return
        self._closed = True
        if self._receive_task is not None:
            self._receive_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._receive_task
            self._receive_task = None
        self._context.reject_pending(ChannelClosedError("Transport closed"))
        await self._channel.close()
