"""
linenet client.

This module implements the client role: at most one outbound connection at a time,
read either by explicit receive() calls or by a background task feeding a listener.

Terms:
- Sync mode = No listener is attached at connect time; the caller calls receive()
- Async mode = A listener is attached at connect time; a background task reads lines
  and calls the listener's hooks until the connection ends
- Reconnect = Close whatever connection exists, then open a fresh one to the same target

Example usage:
class Printer(ClientListener):
    async def message_received(self, message: str) -> None:
        print(message)
    async def disconnected(self) -> None:
        print("Disconnected")

async def main():
    client = await LineClient.create("127.0.0.1", 8000, listener=Printer())
    async with client:
        await client.send("hello")
        await asyncio.sleep(1)

asyncio.run(main())
"""

import asyncio
import logging
from typing import Optional, Self, TYPE_CHECKING

if TYPE_CHECKING:
    from ..config import LineNetConfig

from ..io import LineConnection
from ..exceptions import (
    LineError,
    LineConnectError,
    LineClosedError,
    LineIOError,
    LineEndOfStream,
    LineNotConnectedError,
)
from .listeners import ClientListener, invoke
from .types import Const, ClientState


class LineClient:
    """
    Policy notes:
      - send() with no connection raises LineNotConnectedError, it never reconnects by itself
      - a lost connection is never re-established automatically; call reconnect()
      - in sync mode, an I/O failure in send() or receive() closes the connection before raising
    """

    def __init__(self,
                 host: str = Const.DEFAULT_HOST,
                 port: int = Const.DEFAULT_PORT,
                 listener: Optional[ClientListener] = None,
                 timeout: float = Const.CONNECT_TIMEOUT,
                 encoding: str = Const.ENCODING,
                 logger: Optional[logging.Logger] = None,
                 print_traffic: bool = False):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.encoding = encoding
        self.logger = logger or logging.getLogger(__name__)
        self.print_traffic = print_traffic
        self.state = ClientState.DISCONNECTED
        self._listener = listener
        self._connection: Optional[LineConnection] = None
        self._target: Optional[tuple[str, int]] = None # (host, port) of self._connection
        self._reader_task: Optional[asyncio.Task] = None
        self._connect_lock = asyncio.Lock()

    @classmethod
    async def create(cls,
                     host: str = Const.DEFAULT_HOST,
                     port: int = Const.DEFAULT_PORT,
                     listener: Optional[ClientListener] = None,
                     connect_now: bool = True,
                     **kwargs) -> Self:
        """Create a client and, unless connect_now is False, connect it straight away"""
        self = cls(host, port, listener, **kwargs)
        if connect_now:
            await self.reconnect()
        return self

    @classmethod
    def from_config(cls,
                    config: "LineNetConfig",
                    listener: Optional[ClientListener] = None,
                    logger: Optional[logging.Logger] = None) -> Self:
        return cls(host=config.host,
                   port=config.port,
                   listener=listener,
                   timeout=config.connect_timeout,
                   encoding=config.encoding,
                   logger=logger,
                   print_traffic=config.print_traffic)

    @property
    def listener(self) -> Optional[ClientListener]:
        return self._listener
    @listener.setter
    def listener(self, listener: Optional[ClientListener]) -> None:
        # Mode is fixed per connection; a new listener only starts a read task on the next connect
        self._listener = listener

    # ============================
    # Connect / Close
    # ============================

    async def connect(self, host: str, port: int) -> None:
        """
        Connect to a (possibly new) server, closing any open connection first.

        If several connect() calls overlap, the client ends up connected to the last target set.
        """
        self.host = host
        self.port = port
        await self.reconnect()

    async def reconnect(self) -> None:
        """Connect to the last target again, closing any open connection first"""
        while True:
            # Close outside the lock: in async mode this waits for the old read task,
            # and that task's disconnected hook is allowed to call reconnect() itself.
            await self.close()

            async with self._connect_lock:
                if self._connection is not None:
                    if self._target == (self.host, self.port):
                        self.logger.debug(f"Already reconnected to {self._connection.peer} by another task")
                        return
                    # Another task connected to a target that connect() has since replaced
                    continue

                target = (self.host, self.port)
                self.state = ClientState.CONNECTING
                try:
                    connection = await LineConnection.open(
                        *target,
                        timeout=self.timeout,
                        encoding=self.encoding,
                        logger=self.logger,
                        print_traffic=self.print_traffic
                    )
                except LineConnectError as e:
                    self.state = ClientState.DISCONNECTED
                    self.logger.error(f"{e}")
                    raise

                self._connection = connection
                self._target = target
                self.state = ClientState.CONNECTED
                if self._listener is not None:
                    self._reader_task = asyncio.create_task(self._read_loop(connection))
                return

    async def close(self) -> None:
        """Close the connection, if any. Safe to call repeatedly and from inside a listener hook."""
        connection, self._connection = self._connection, None
        task, self._reader_task = self._reader_task, None
        self.state = ClientState.DISCONNECTED
        if connection is not None:
            await connection.close()
            self.logger.info(f"Closed connection to {connection.peer}")
        # Let the read task observe the close and fire its disconnected hook
        if task is not None and task is not asyncio.current_task():
            await task

    def is_connected(self) -> bool:
        """Best effort: a half-broken connection may report True until the next I/O attempt"""
        return self._connection is not None and self._connection.is_connected()

    # ============================
    # Send / Receive
    # ============================

    async def send(self, message: str) -> None:
        """Send one line. The message must not contain a line terminator."""
        connection = self._connection
        if connection is None:
            raise LineNotConnectedError(f"Not connected to {self.host}:{self.port}")
        try:
            await connection.write_line(message)
        except LineClosedError as e:
            raise LineNotConnectedError(f"Not connected to {self.host}:{self.port}") from e
        except LineIOError as e:
            self.logger.error(f"{e}")
            if self._reader_task is None:
                await self._drop(connection)
            raise

    async def receive(self) -> str:
        """
        Wait for the next line from the server (sync mode only).

        Raises:
            LineEndOfStream: the server closed the connection
            LineIOError: the connection failed
            LineNotConnectedError: there is no connection

        In the first two cases the connection is closed; reconnect before calling again.
        """
        if self._reader_task is not None:
            raise RuntimeError("receive() is not available while a listener is reading the connection")
        connection = self._connection
        if connection is None:
            raise LineNotConnectedError(f"Not connected to {self.host}:{self.port}")
        try:
            line = await connection.read_line()
        except LineClosedError as e:
            raise LineNotConnectedError(f"Not connected to {self.host}:{self.port}") from e
        except LineIOError as e:
            self.logger.error(f"{e}")
            await self._drop(connection)
            raise
        if line is None:
            await self._drop(connection)
            raise LineEndOfStream(f"Server {connection.peer} closed the connection")
        return line

    async def request(self, message: str) -> str:
        """Send a line and wait for the next line in reply (sync mode only)"""
        await self.send(message)
        return await self.receive()

    async def _drop(self, connection: LineConnection) -> None:
        if self._connection is connection:
            self._connection = None
            self.state = ClientState.DISCONNECTED
        await connection.close()

    # ============================
    # Background reader (async mode)
    # ============================

    async def _read_loop(self, connection: LineConnection) -> None:
        await invoke(self._listener, "connected", logger=self.logger)
        try:
            while True:
                line = await connection.read_line()
                if line is None:
                    self.logger.info(f"Connection to {connection.peer} ended")
                    break
                await invoke(self._listener, "message_received", line, logger=self.logger)
        except LineClosedError:
            self.logger.debug(f"Connection to {connection.peer} closed while reading")
        except LineError as e:
            self.logger.warning(f"Connection to {connection.peer} failed: {e}")
        finally:
            # Only touch client state if nobody has replaced this connection already
            if self._connection is connection:
                self._connection = None
                self._reader_task = None
                self.state = ClientState.DISCONNECTED
            await connection.close()
            await invoke(self._listener, "disconnected", logger=self.logger)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def __repr__(self) -> str:
        return f"LineClient<{self.host}:{self.port} {self.state.name.lower()}>"
