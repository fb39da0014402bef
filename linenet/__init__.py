"""
linenet Python Library

A small toolkit for exchanging newline-delimited text over TCP.

This library provides two layers of abstraction:

1. **io**: Wire-level connection (TCP streams, line framing)
2. **api**: Client and server roles using io (reconnects, sessions, dispatch to listeners)

Example usage:
    import linenet

    # Server: reply to every line with the line doubled
    class Doubler(linenet.ServerListener):
        async def message_received(self, session_id, message):
            return message + message

    async with await linenet.LineServer.create(8000, Doubler()) as server:
        await linenet.wait_for_shutdown()

    # Client: request/response without a listener
    async with await linenet.LineClient.create("127.0.0.1", 8000) as client:
        print(await client.request("ping"))  # pingping
"""

# Client and server roles
from .api import LineClient, LineServer, LineSession, ClientListener, ServerListener, Const, ClientState

# Wire level
from .io import LineConnection, ConnectionConst

# Configuration
from .config import LineNetConfig, load_config, setup_logging

# Exceptions
from .exceptions import (
    LineError,
    LineConnectError,
    LineBindError,
    LineIOError,
    LineEndOfStream,
    LineClosedError,
    LineNotConnectedError,
    LineConfigurationError,
)

# Utilities
from .utils import run_with_keyboard_interrupt, wait_for_shutdown

__version__ = "0.0.0"

# Public API - these are the main classes users should import
__all__ = [
    # Roles
    "LineClient",
    "LineServer",
    "LineSession",
    "ClientListener",
    "ServerListener",

    # Wire level (for advanced users)
    "LineConnection",
    "ConnectionConst",

    # Types
    "Const",
    "ClientState",

    # Configuration
    "LineNetConfig",
    "load_config",
    "setup_logging",

    # Exceptions
    "LineError",
    "LineConnectError",
    "LineBindError",
    "LineIOError",
    "LineEndOfStream",
    "LineClosedError",
    "LineNotConnectedError",
    "LineConfigurationError",

    # Utilities
    "run_with_keyboard_interrupt",
    "wait_for_shutdown",
]
