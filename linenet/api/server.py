"""
linenet server.

This module implements the server role: a listening socket, one session per accepted
connection, and a registry of live sessions keyed by the peer's "<ip>:<port>".

Terms:
- Session = One accepted connection, read by its own task until it ends
- Session id = "<ip>:<port>" of the peer, fixed at accept time
- Registry = session id -> LineSession, guarded by a single asyncio.Lock

Each session's lines are dispatched to the listener in arrival order, one at a time.
Different sessions are dispatched concurrently with no ordering between them.
If message_received returns a non-empty string, it's sent back to the same session.

Example usage:
class Doubler(ServerListener):
    async def message_received(self, session_id: str, message: str) -> Optional[str]:
        return message + message

async def main():
    server = await LineServer.create(8000, Doubler())
    async with server:
        await wait_for_shutdown()

asyncio.run(main())
"""

import asyncio
import logging
from typing import Optional, Self, TYPE_CHECKING

if TYPE_CHECKING:
    from ..config import LineNetConfig

from ..io import LineConnection
from ..exceptions import LineError, LineBindError, LineClosedError
from .listeners import ServerListener, invoke
from .types import Const


class LineSession:
    """Server-side handle for one accepted connection"""

    def __init__(self, server: "LineServer", connection: LineConnection):
        self.server = server
        self.connection = connection
        self.id: str = connection.peer

    async def run(self) -> None:
        """Read lines until the connection ends, then remove this session from the server"""
        try:
            while True:
                line = await self.connection.read_line()
                if line is None:
                    self.server.logger.info(f"Client {self.id} closed the connection")
                    break
                await self.server._dispatch(self, line)
        except LineClosedError:
            self.server.logger.debug(f"Session {self.id} closed while reading")
        except LineError as e:
            self.server.logger.warning(f"Session {self.id} failed: {e}")
        finally:
            await self.server._remove(self.id, only=self)

    async def send(self, message: str) -> None:
        await self.connection.write_line(message)

    async def close(self) -> None:
        await self.connection.close()

    def __repr__(self) -> str:
        return f"LineSession<{self.id}>"


class LineServer:

    def __init__(self,
                 listener: Optional[ServerListener] = None,
                 host: str = Const.LISTEN_HOST,
                 encoding: str = Const.ENCODING,
                 logger: Optional[logging.Logger] = None,
                 print_traffic: bool = False):
        self.host = host
        self.encoding = encoding
        self.logger = logger or logging.getLogger(__name__)
        self.print_traffic = print_traffic
        self._listener = listener
        self._server: Optional[asyncio.Server] = None
        self._sessions: dict[str, LineSession] = {}
        self._lock = asyncio.Lock()

    @classmethod
    async def create(cls,
                     port: int = Const.DEFAULT_PORT,
                     listener: Optional[ServerListener] = None,
                     **kwargs) -> Self:
        """Create a server and start listening on port"""
        self = cls(listener, **kwargs)
        await self.open(port)
        return self

    @classmethod
    def from_config(cls,
                    config: "LineNetConfig",
                    listener: Optional[ServerListener] = None,
                    logger: Optional[logging.Logger] = None) -> Self:
        return cls(listener=listener,
                   host=config.listen_host,
                   encoding=config.encoding,
                   logger=logger,
                   print_traffic=config.print_traffic)

    @property
    def listener(self) -> Optional[ServerListener]:
        return self._listener
    @listener.setter
    def listener(self, listener: Optional[ServerListener]) -> None:
        self._listener = listener

    @property
    def port(self) -> Optional[int]:
        """The port actually bound, or None if not open"""
        if self._server is None or not self._server.sockets:
            return None
        return self._server.sockets[0].getsockname()[1]

    # ============================
    # Open / Close
    # ============================

    async def open(self, port: int) -> None:
        """
        Listen on port (0 picks a free one, see self.port).

        Opening an already open server replaces its listening socket; existing sessions are kept.
        """
        if self._server is not None:
            self.logger.info(f"Replacing listener on port {self.port}")
            self._server.close()
            self._server = None
        try:
            self._server = await asyncio.start_server(
                self._accept,
                self.host,
                port,
                limit=Const.LINE_LIMIT,
                backlog=Const.BACKLOG,
            )
        except OSError as e:
            raise LineBindError(f"Failed to listen on {self.host}:{port}: {e}") from e
        self.logger.info(f"Listening on {self.host}:{self.port}")

    async def close(self) -> None:
        """
        Disconnect every session, then stop listening.

        Safe to call more than once, and from inside a listener hook.
        """
        async with self._lock:
            drained = list(self._sessions.values())
            self._sessions.clear()
            await asyncio.gather(*(self._close_session(session) for session in drained))
            if self._server is not None:
                self._server.close()
                self._server = None
                self.logger.info("Server closed")

        for session in drained:
            await invoke(self._listener, "client_disconnected", session.id, logger=self.logger)

    def is_open(self) -> bool:
        return self._server is not None and self._server.is_serving()

    # ============================
    # Sessions
    # ============================

    async def _accept(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        # asyncio runs this in a new task per connection; that task becomes the session's read loop
        connection = LineConnection(reader, writer, encoding=self.encoding, logger=self.logger, print_traffic=self.print_traffic)
        session = LineSession(self, connection)

        replaced: Optional[LineSession] = None
        async with self._lock:
            if self._server is None:
                accepted = False
            else:
                accepted = True
                replaced = self._sessions.pop(session.id, None)
                if replaced is not None:
                    # Same peer endpoint after a listener replacement; the old session is finished
                    self.logger.warning(f"Session id {session.id} reused, closing the previous session")
                    await self._close_session(replaced)
                self._sessions[session.id] = session
        if not accepted:
            # Server closed between accept and registration
            await connection.close()
            return
        if replaced is not None:
            await invoke(self._listener, "client_disconnected", replaced.id, logger=self.logger)

        self.logger.info(f"Client {session.id} connected")
        await invoke(self._listener, "client_connected", session.id, logger=self.logger)
        await session.run()

    async def _dispatch(self, session: LineSession, message: str) -> None:
        reply = await invoke(self._listener, "message_received", session.id, message, logger=self.logger)
        if reply:
            try:
                await self.send(session.id, reply)
            except (LineError, ValueError, TypeError) as e:
                # A bad reply is the application's fault; the session carries on
                self.logger.error(f"Failed to reply to {session.id}: {e!r}")

    async def sessions(self) -> list[str]:
        """Ids of all live sessions"""
        async with self._lock:
            return list(self._sessions)

    async def send(self, session_id: str, message: str) -> bool:
        """
        Send a line to one session.

        Returns:
            True if the line was written, False if there is no such session (or it closed meanwhile)

        Raises:
            LineIOError: the write failed. The session stays registered until its read loop notices.
        """
        async with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            return False
        try:
            await session.send(message)
        except LineClosedError:
            return False
        return True

    async def broadcast(self, message: str) -> int:
        """Send a line to every live session. Returns the number of sessions it was written to."""
        async with self._lock:
            targets = list(self._sessions.values())
        sent = 0
        for session in targets:
            try:
                await session.send(message)
                sent += 1
            except LineError as e:
                self.logger.warning(f"Broadcast to {session.id} failed: {e}")
        return sent

    async def disconnect(self, session_id: str) -> bool:
        """
        Remove a session and close its connection.

        Returns:
            True if the session was removed, False if it was unknown or already gone
        """
        return await self._remove(session_id)

    async def _remove(self, session_id: str, only: Optional[LineSession] = None) -> bool:
        # With only set, the entry is removed only if it still belongs to that session
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None or (only is not None and session is not only):
                return False
            del self._sessions[session_id]
            await self._close_session(session)
        self.logger.info(f"Client {session_id} disconnected")
        await invoke(self._listener, "client_disconnected", session_id, logger=self.logger)
        return True

    async def _close_session(self, session: LineSession) -> None:
        # Registry entry is already gone; a failing close mustn't change that
        try:
            await session.close()
        except Exception as e:
            self.logger.error(f"Error closing session {session.id}: {e}")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def __repr__(self) -> str:
        return f"LineServer<{self.host}:{self.port} {'open' if self.is_open() else 'closed'}>"
