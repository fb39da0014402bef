"""
linenet wire-level connection.

This module implements one line-oriented TCP connection on top of asyncio streams.
It contains the LineConnection class, which knows nothing about client or server roles.

Terms:
- Line = A text message terminated on the wire by a newline ("\\r\\n" is accepted on input)
- Connection = One live socket plus its line reader and line writer
- Peer = The "<ip>:<port>" of the remote end

Example usage:
async def main():
    connection = await LineConnection.open("127.0.0.1", 8000, timeout=4.0)
    async with connection:
        await connection.write_line("ping")
        line = await connection.read_line()
        if line is None:
            print("Server closed the connection")
        else:
            print("Received:", line)

asyncio.run(main())
"""

import asyncio
import logging
from typing import Optional, Self

from colorama import Fore, Style

from ..exceptions import LineConnectError, LineIOError, LineClosedError

# Constants
class ConnectionConst:
    """Constants for the LineConnection"""
    TERMINATOR = "\n"
    ENCODING = "utf-8"
    CONNECT_TIMEOUT = 4.0
    CLOSE_TIMEOUT = 1.0
    LINE_LIMIT = 2 ** 16 # Longest line the reader will reassemble


class LineConnection:
    """
    Wire:  <text>\\n
      - text is encoded with self.encoding (UTF-8 unless configured otherwise)
      - writes are serialised by a per-connection lock, so a line is never interleaved with another
      - read_line() returns None at end of stream; errors are raised as LineIOError
      - once closed, read_line() and write_line() raise LineClosedError
    """

    def __init__(self,
                 reader: asyncio.StreamReader,
                 writer: asyncio.StreamWriter,
                 encoding: str = ConnectionConst.ENCODING,
                 logger: Optional[logging.Logger] = None,
                 print_traffic: bool = False):
        self.logger = logger or logging.getLogger(__name__)
        self.encoding = encoding
        self.print_traffic = print_traffic
        self._reader = reader
        self._writer = writer
        self._write_lock = asyncio.Lock()
        self._closed = False

        # IPv4 gives (host, port), IPv6 gives (host, port, flowinfo, scope_id)
        peername = writer.get_extra_info("peername") or ("", 0)
        self.address: str = peername[0]
        self.port: int = peername[1]

    @classmethod
    async def open(cls,
                   host: str,
                   port: int,
                   timeout: float = ConnectionConst.CONNECT_TIMEOUT,
                   encoding: str = ConnectionConst.ENCODING,
                   limit: int = ConnectionConst.LINE_LIMIT,
                   logger: Optional[logging.Logger] = None,
                   print_traffic: bool = False) -> Self:
        """Connect to host:port, giving up after timeout seconds"""
        logger = logger or logging.getLogger(__name__)
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port, limit=limit),
                timeout=timeout
            )
        except asyncio.TimeoutError as e:
            raise LineConnectError(f"Timed out connecting to {host}:{port} after {timeout}s") from e
        except OSError as e:
            raise LineConnectError(f"Failed to connect to {host}:{port}: {e}") from e
        connection = cls(reader, writer, encoding=encoding, logger=logger, print_traffic=print_traffic)
        logger.info(f"Connected to {connection.peer}")
        return connection

    @property
    def peer(self) -> str:
        return f"{self.address}:{self.port}"

    async def write_line(self, text: str) -> None:
        """Send one line. The terminator is appended here and must not appear in text."""
        if "\n" in text or "\r" in text:
            raise ValueError("Line must not contain a line terminator")
        data = (text + ConnectionConst.TERMINATOR).encode(self.encoding)

        async with self._write_lock:
            if self._closed:
                raise LineClosedError(f"Connection to {self.peer} is closed")
            if self._writer.is_closing():
                raise LineIOError(f"Connection to {self.peer} was lost")
            try:
                self._writer.write(data)
                await self._writer.drain()
            except OSError as e:
                raise LineIOError(f"Failed to write to {self.peer}: {e}") from e

        self.logger.debug(f"Sent to {self.peer}: {text}")
        if self.print_traffic:
            print(Fore.MAGENTA + f"SEND {self.peer}: " + Style.DIM + text + Style.RESET_ALL)

    async def read_line(self) -> Optional[str]:
        """Wait for the next line and return it without its terminator, or None at end of stream"""
        if self._closed:
            raise LineClosedError(f"Connection to {self.peer} is closed")
        try:
            data = await self._reader.readline()
        except ValueError as e:
            # readline() raises ValueError when a line overruns the stream limit
            raise LineIOError(f"Line from {self.peer} exceeds the stream limit: {e}") from e
        except OSError as e:
            raise LineIOError(f"Failed to read from {self.peer}: {e}") from e

        # Closed locally while waiting: whatever partial data arrived is discarded
        if not data or self._closed:
            return None

        try:
            line = data.decode(self.encoding)
        except UnicodeDecodeError as e:
            raise LineIOError(f"Undecodable line from {self.peer}: {e}") from e
        if line.endswith("\n"):
            line = line[:-1]
        if line.endswith("\r"):
            line = line[:-1]

        self.logger.debug(f"Received from {self.peer}: {line}")
        if self.print_traffic:
            print(Fore.CYAN + f"RECV {self.peer}: " + Style.DIM + line + Style.RESET_ALL)
        return line

    def is_closed(self) -> bool:
        return self._closed

    def is_connected(self) -> bool:
        """Best effort: a half-broken connection may report True until the next I/O attempt"""
        return not self._closed and not self._writer.is_closing()

    async def close(self) -> None:
        """Close the connection. Calling this more than once is a no-op."""
        if self._closed:
            return
        self._closed = True
        self._writer.close()
        try:
            await asyncio.wait_for(self._writer.wait_closed(), timeout=ConnectionConst.CLOSE_TIMEOUT)
        except asyncio.TimeoutError:
            # Peer isn't draining our buffer; drop it
            self.logger.warning(f"Connection to {self.peer} did not close in time, aborting")
            self._writer.transport.abort()
        except OSError as e:
            self.logger.debug(f"Error while closing connection to {self.peer}: {e}")
        self.logger.debug(f"Closed connection to {self.peer}")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def __repr__(self) -> str:
        return f"LineConnection<{self.peer}{' closed' if self._closed else ''}>"
