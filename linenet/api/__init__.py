"""
Client and server roles built on linenet.io.

This module contains:
- LineClient (one outbound connection, sync receive() or async listener mode)
- LineServer, LineSession (accepted connections and the session registry)
- ClientListener, ServerListener (hook sets for applications)
- Const, ClientState (defaults and client lifecycle states)
"""

from .client import LineClient
from .server import LineServer, LineSession
from .listeners import ClientListener, ServerListener
from .types import Const, ClientState

__all__ = [
    # Roles
    "LineClient",
    "LineServer",
    "LineSession",

    # Listener contracts
    "ClientListener",
    "ServerListener",

    # Types
    "Const",
    "ClientState",
]
