"""Configuration for bridge behavior."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from typing import Optional, TextIO

import structlog


@dataclass
class BridgeConfig:
    """Configuration for connector and transport behavior.

    `request_timeout` is off by default: a direct-return request waits for
    the host indefinitely unless a timeout is set explicitly.
    """

    # Connector identity
    connector_name: str = "essentialsiab"
    display_name: str = "Elastos Essentials In App Browser"

    # Wire settings
    use_msgpack: bool = True
    max_frame_size: int = 10 * 1024 * 1024

    # Seconds; None waits forever
    request_timeout: Optional[float] = None

    # Base URL for URL-style intents
    url_intent_base: str = "https://did.elastos.net"


def configure_logging(level: int = logging.INFO, stream: TextIO | None = None) -> None:
    """Route structlog output to stderr (or `stream`).

    Stdout is left alone since it may carry the channel when the client runs
    as a sandboxed subprocess.
    """
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stderr),
        cache_logger_on_first_use=False,
    )
