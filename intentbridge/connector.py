"""Connector facade exposed to code running in the sandboxed context.

The connector is built unconfigured. `configure()` hands it the identity
SDK and connectivity modules of the running app; until then every
operation raises `NotConfiguredError` before anything is sent.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Iterable, Mapping
from typing import Any, Optional

import structlog

from .bridge.context import BridgeContext, ResponseHandler
from .bridge.dispatcher import IntentDispatcher
from .bridge.sink import ResponseSink
from .bridge.transport import BridgeTransport, Channel
from .config import BridgeConfig
from .errors import NotConfiguredError
from .operations.base import ModuleRefs
from .operations.did import DIDOperations
from .protocol.channel import MessageChannel

logger = structlog.get_logger()


class Connector:
    """Single external surface for identity operations run by the host."""

    def __init__(self, channel: Channel, config: BridgeConfig | None = None) -> None:
        self._config = config or BridgeConfig()
        self.name = self._config.connector_name
        self._context = BridgeContext()
        self._transport = BridgeTransport(channel, self._context, self._config)
        self._sink = ResponseSink(self._context)
        self._dispatcher = IntentDispatcher(self._context, self._sink)
        self._did: Optional[DIDOperations] = None
        self._registered = False

        DIDOperations.register_response_processors(self._dispatcher)

    @classmethod
    def from_streams(
        cls,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        config: BridgeConfig | None = None,
    ) -> "Connector":
        """Build a connector over a framed channel on the given streams."""
        config = config or BridgeConfig()
        channel = MessageChannel(
            reader,
            writer,
            use_msgpack=config.use_msgpack,
            max_frame_size=config.max_frame_size,
        )
        return cls(channel, config)

    @property
    def is_configured(self) -> bool:
        return self._did is not None

    @property
    def transport(self) -> BridgeTransport:
        return self._transport

    @property
    def dispatcher(self) -> IntentDispatcher:
        return self._dispatcher

    @property
    def sink(self) -> ResponseSink:
        return self._sink

    def configure(self, did_sdk: Any, connectivity: Any) -> None:
        """Wire the app's SDK modules and register with connectivity once."""
        modules = ModuleRefs(did_sdk=did_sdk, connectivity=connectivity)
        if self._did is None:
            self._did = DIDOperations(self._transport, self._dispatcher, modules, self._config)
        else:
            self._did.bind(modules)

        # Registration also makes connectivity call register_response_handler()
        if not self._registered:
            try:
                connectivity.register_connector(self)
                self._registered = True
            except Exception as e:
                logger.warning("register_connector_error", error=str(e))

    def _operations(self) -> DIDOperations:
        if self._did is None:
            raise NotConfiguredError(
                "This dApp uses an old version of the connectivity SDK and must be "
                "upgraded to be able to run inside the host"
            )
        return self._did

    @property
    def pending_flows(self) -> int:
        """Number of fire-and-forget flows still running."""
        return self._did.pending_flows if self._did is not None else 0

    async def start(self) -> None:
        await self._transport.start()

    async def drain(self) -> None:
        """Wait for outstanding fire-and-forget flows."""
        if self._did is not None:
            await self._did.drain()

    async def close(self) -> None:
        await self._transport.close()
        self._context.teardown()

    async def get_display_name(self) -> str:
        return self._config.display_name

    def register_response_handler(self, handler: ResponseHandler) -> None:
        logger.info("Registered response handler on the connector", connector=self.name)
        self._sink.set_handler(handler)

    # DID API

    def get_credentials(self, query: Mapping[str, Any]) -> Awaitable[Any]:
        return self._operations().get_credentials(query)

    def request_credentials(self, request: Mapping[str, Any]) -> Awaitable[Any]:
        return self._operations().request_credentials(request)

    def request_credentials_v2(self, request_id: str, request: Mapping[str, Any]) -> Awaitable[None]:
        return self._operations().request_credentials_v2(request_id, request)

    def issue_credential(
        self,
        holder: str,
        types: list[str],
        subject: Mapping[str, Any],
        identifier: Optional[str] = None,
        expiration_date: Optional[str] = None,
    ) -> Awaitable[Any]:
        return self._operations().issue_credential(
            holder, types, subject, identifier, expiration_date
        )

    def import_credentials(
        self, credentials: Iterable[Any], options: Optional[Mapping[str, Any]] = None
    ) -> Awaitable[Optional[list[dict[str, Any]]]]:
        return self._operations().import_credentials(credentials, options)

    def import_credentials_v2(
        self,
        request_id: str,
        credentials: Iterable[Any],
        options: Optional[Mapping[str, Any]] = None,
    ) -> Awaitable[None]:
        return self._operations().import_credentials_v2(request_id, credentials, options)

    def sign_data(
        self, data: str, jwt_extra: Any = None, signature_field_name: Optional[str] = None
    ) -> Awaitable[Any]:
        return self._operations().sign_data(data, jwt_extra, signature_field_name)

    def delete_credentials(
        self, credential_ids: list[str], options: Optional[Mapping[str, Any]] = None
    ) -> Awaitable[Optional[list[str]]]:
        return self._operations().delete_credentials(credential_ids, options)

    def generate_app_id_credential(self, app_instance_did: str, app_did: str) -> Awaitable[Any]:
        return self._operations().generate_app_id_credential(app_instance_did, app_did)

    def update_hive_vault_address(self, vault_address: str, display_name: str) -> Awaitable[Any]:
        return self._operations().update_hive_vault_address(vault_address, display_name)

    def generate_hive_backup_credential(
        self, source_hive_node_did: str, target_hive_node_did: str, target_node_url: str
    ) -> Awaitable[Any]:
        return self._operations().generate_hive_backup_credential(
            source_hive_node_did, target_hive_node_did, target_node_url
        )

    # Not supported inside the host

    def request_publish(self) -> Awaitable[str]:
        raise NotImplementedError("Method not implemented.")

    def import_credential_context(self, service_name: str, context_credential: Any) -> Awaitable[Any]:
        raise NotImplementedError("import_credential_context(): Method not implemented.")

    def pay(self, query: Any) -> Awaitable[Any]:
        raise NotImplementedError("Method not implemented.")

    def vote_for_dpos(self) -> Awaitable[None]:
        raise NotImplementedError("Method not implemented.")

    def vote_for_cr_council(self) -> Awaitable[None]:
        raise NotImplementedError("Method not implemented.")

    def vote_for_cr_proposal(self) -> Awaitable[None]:
        raise NotImplementedError("Method not implemented.")

    def send_smart_contract_transaction(self, payload: Any) -> Awaitable[str]:
        raise NotImplementedError("Method not implemented.")

    # Host-side response entry points

    def send_response(self, request_id: str, result: Any) -> bool:
        return self._transport.receive_result(request_id, result)

    def send_error(self, request_id: str, error: str) -> bool:
        return self._transport.receive_error(request_id, error)
