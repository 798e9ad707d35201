from __future__ import annotations

import asyncio
import contextlib
import json
import struct
from typing import Any

import msgpack
import structlog

from ..errors import ProtocolError
from .messages import BaseMessage, InboundMessage, parse_message

logger = structlog.get_logger()

__all__ = ["FrameReader", "FrameWriter", "MessageChannel", "ProtocolError"]

_LENGTH = struct.Struct(">I")
DEFAULT_MAX_FRAME_SIZE = 10 * 1024 * 1024


class FrameReader:
    """Reads length-prefixed frames from a stream.

    Frame format: [4 bytes big-endian length][data]
    """

    def __init__(
        self, reader: asyncio.StreamReader, max_frame_size: int = DEFAULT_MAX_FRAME_SIZE
    ) -> None:
        self._reader = reader
        self._max_frame_size = max_frame_size

    async def read_frame(self) -> bytes:
        """Read one complete frame.

        Raises:
            ProtocolError: If the stream ends mid-frame or the frame is too large
        """
        try:
            header = await self._reader.readexactly(_LENGTH.size)
        except asyncio.IncompleteReadError as e:
            raise ProtocolError("Connection closed while reading frame length") from e

        (length,) = _LENGTH.unpack(header)
        if length > self._max_frame_size:
            raise ProtocolError(f"Frame too large: {length} bytes")

        try:
            frame = await self._reader.readexactly(length)
        except asyncio.IncompleteReadError as e:
            raise ProtocolError("Connection closed while reading frame data") from e

        logger.debug("frame_read", size=length)
        return frame


class FrameWriter:
    """Writes length-prefixed frames with backpressure."""

    def __init__(self, writer: asyncio.StreamWriter) -> None:
        self._writer = writer
        self._write_lock = asyncio.Lock()
        self._closed = False

    async def write_frame(self, data: bytes) -> None:
        if self._closed:
            raise ProtocolError("Connection closed")

        # Header and body must not interleave with another writer's frame
        async with self._write_lock:
            self._writer.write(_LENGTH.pack(len(data)) + data)
            await self._writer.drain()

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._writer.close()
            # Peer may already have reset the connection
            with contextlib.suppress(ConnectionError):
                await self._writer.wait_closed()


class MessageChannel:
    """Framed message channel between the sandboxed client and the host."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        use_msgpack: bool = True,
        max_frame_size: int = DEFAULT_MAX_FRAME_SIZE,
    ) -> None:
        self._frame_reader = FrameReader(reader, max_frame_size=max_frame_size)
        self._frame_writer = FrameWriter(writer)
        self._use_msgpack = use_msgpack
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _encode(self, payload: dict[str, Any]) -> bytes:
        if self._use_msgpack:
            return msgpack.packb(payload, use_bin_type=True)
        return json.dumps(payload).encode("utf-8")

    def _decode(self, frame: bytes) -> Any:
        try:
            if self._use_msgpack:
                return msgpack.unpackb(frame, raw=False, strict_map_key=False)
            return json.loads(frame.decode("utf-8"))
        except (ValueError, msgpack.UnpackException) as e:
            raise ValueError(f"Undecodable frame: {e}") from e

    async def write_payload(self, payload: dict[str, Any]) -> None:
        """Encode and send a raw mapping."""
        if self._closed:
            raise ProtocolError("Channel closed")
        await self._frame_writer.write_frame(self._encode(payload))

    async def read_payload(self) -> Any:
        """Receive and decode one raw payload."""
        if self._closed:
            raise ProtocolError("Channel closed")
        frame = await self._frame_reader.read_frame()
        return self._decode(frame)

    async def send_message(self, message: BaseMessage) -> None:
        """Send a message.

        Raises:
            ProtocolError: If the channel is closed
        """
        await self.write_payload(message.model_dump(mode="json"))
        logger.debug("channel_sent", message_type=type(message).__name__, id=message.id)

    async def receive_message(self) -> InboundMessage:
        """Receive the next inbound response.

        Raises:
            ProtocolError: If the channel is closed or the stream ended
            ValueError: If the frame does not hold a valid response
        """
        message = parse_message(await self.read_payload())
        logger.debug("channel_received", message_type=type(message).__name__, id=message.id)
        return message

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            await self._frame_writer.close()
