"""Shared conventions for operation modules.

Operation modules build request envelopes and either await the bridge
transport directly, or launch a fire-and-forget flow whose completion is
routed through the intent dispatcher.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import structlog

from ..bridge.dispatcher import IntentDispatcher
from ..bridge.intent import IntentEntity, IntentType
from ..bridge.transport import BridgeTransport
from ..config import BridgeConfig
from .constants import URL_INTENT_OPERATION, url_intent

logger = structlog.get_logger()


@dataclass(frozen=True)
class ModuleRefs:
    """References to the identity SDK and connectivity modules of the running app.

    did_sdk must expose `VerifiablePresentation.parse(str)`,
    `VerifiableCredential.parse(str)` and `DIDURL.from_url(str)`.
    connectivity must expose `get_application_did()` and
    `register_connector(connector)`.
    """

    did_sdk: Any
    connectivity: Any


class OperationModule:
    def __init__(
        self,
        transport: BridgeTransport,
        dispatcher: IntentDispatcher,
        modules: ModuleRefs,
        config: BridgeConfig | None = None,
    ) -> None:
        self._transport = transport
        self._dispatcher = dispatcher
        self._modules = modules
        self._config = config or BridgeConfig()
        # Background fire-and-forget flows
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def did_sdk(self) -> Any:
        return self._modules.did_sdk

    @property
    def pending_flows(self) -> int:
        return len(self._tasks)

    def bind(self, modules: ModuleRefs) -> None:
        """Swap the app modules; flows already running keep being tracked."""
        self._modules = modules

    async def post_message(self, operation: str, parameters: dict[str, Any] | None = None) -> Any:
        return await self._transport.send(operation, parameters)

    async def post_url_intent(self, path: str, params: dict[str, Any]) -> Any:
        params = dict(params)
        # Informative only; omitted when the app has no DID
        caller = self.application_did()
        if caller:
            params["caller"] = caller

        return await self._transport.send(
            URL_INTENT_OPERATION,
            {"url": url_intent(self._config.url_intent_base, path), "params": params},
        )

    def application_did(self) -> Optional[str]:
        # get_application_did() raises when no app DID has been set
        try:
            return self._modules.connectivity.get_application_did()
        except Exception:
            return None

    def launch_intent(
        self,
        request_id: str,
        intent_type: IntentType,
        operation: Callable[[], Awaitable[Any]],
    ) -> asyncio.Task[None]:
        """Start a fire-and-forget flow for `request_id`.

        Raises:
            DuplicateRequestError: If `request_id` is already in flight
        """
        self._dispatcher.reserve(request_id)
        task = asyncio.create_task(self._complete_intent(request_id, intent_type, operation))
        self._tasks.add(task)

        def _done(t: asyncio.Task[None]) -> None:
            self._tasks.discard(t)
            if t.cancelled():
                return
            exc = t.exception()
            if exc:
                logger.warning("intent_flow_error", request_id=request_id, error=str(exc))

        task.add_done_callback(_done)
        return task

    async def _complete_intent(
        self,
        request_id: str,
        intent_type: IntentType,
        operation: Callable[[], Awaitable[Any]],
    ) -> None:
        try:
            try:
                payload = await operation()
            except Exception as e:
                logger.info(
                    "intent_request_failed",
                    request_id=request_id,
                    type=intent_type.value,
                    error=str(e),
                )
                self._dispatcher.fail(request_id, str(e))
                return

            intent = IntentEntity(
                id=request_id,
                type=intent_type,
                request_payload={
                    "caller": self.application_did(),
                    "request_id": request_id,
                },
                response_payload=payload,
            )
            await self._dispatcher.dispatch(intent)
        finally:
            self._dispatcher.release(request_id)

    async def drain(self) -> None:
        """Wait for all outstanding fire-and-forget flows to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
