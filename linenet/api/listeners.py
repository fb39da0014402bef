"""
Listener contracts for LineClient and LineServer.

A listener is any object exposing some of the hook names below. Hooks may be
coroutine functions or plain functions, and hooks a listener doesn't define
are skipped. The base classes exist so you only override what you need.

Client hooks run on the client's background read task. Server hooks run on the
task of the session that produced the event, so message_received may run
concurrently for different sessions (but never twice at once for the same one).
Don't block in a hook: while it runs, no further lines are read from that connection.
"""

import inspect
import logging
from typing import Any, Optional

class ClientListener:
    """Hooks invoked by a LineClient in async mode"""

    async def message_received(self, message: str) -> None:
        """Invoked for every line received from the server"""
        pass

    async def connected(self) -> None:
        """Invoked once the connection is up, before any message is delivered"""
        pass

    async def disconnected(self) -> None:
        """Invoked once when the connection is lost or closed"""
        pass

class ServerListener:
    """Hooks invoked by a LineServer"""

    async def message_received(self, session_id: str, message: str) -> Optional[str]:
        """
        Invoked for every line received from a client.

        Args:
            session_id: "<ip>:<port>" of the client
            message: the line, without its terminator

        Returns:
            A reply to send back to the same client, or None (or "") for no reply
        """
        return None

    async def client_connected(self, session_id: str) -> None:
        pass

    async def client_disconnected(self, session_id: str) -> None:
        pass


async def invoke(listener: Any, hook: str, *args, logger: Optional[logging.Logger] = None) -> Any:
    """
    Call listener.<hook>(*args) if it exists, awaiting the result if needed.

    Exceptions raised by the hook are logged with their traceback and swallowed,
    so a misbehaving application can't take down the read loop that called it.
    Returns the hook's result, or None if there was no hook or it raised.
    """
    if listener is None:
        return None
    func = getattr(listener, hook, None)
    if not callable(func):
        return None
    try:
        result = func(*args)
        if inspect.isawaitable(result):
            result = await result
        return result
    except Exception:
        (logger or logging.getLogger(__name__)).exception(f"Listener hook {hook} raised")
        return None
