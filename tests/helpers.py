import asyncio
import inspect
from typing import Optional

from linenet import ClientListener, ServerListener


async def wait_until(predicate, timeout: float = 3.0, interval: float = 0.01):
    """Poll predicate (sync or async) until it returns something truthy"""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        result = predicate()
        if inspect.isawaitable(result):
            result = await result
        if result:
            return result
        if loop.time() > deadline:
            raise AssertionError("Condition not met in time")
        await asyncio.sleep(interval)


async def open_raw(port: int, host: str = "127.0.0.1"):
    """Plain asyncio connection plus the session id the server will give it"""
    reader, writer = await asyncio.open_connection(host, port)
    local_host, local_port = writer.get_extra_info("sockname")[:2]
    return reader, writer, f"{local_host}:{local_port}"


class RecordingServerListener(ServerListener):

    def __init__(self, reply=None):
        self.reply = reply
        self.messages: list[tuple[str, str]] = []
        self.connected: list[str] = []
        self.disconnected: list[str] = []

    async def message_received(self, session_id: str, message: str) -> Optional[str]:
        self.messages.append((session_id, message))
        return self.reply(message) if self.reply else None

    async def client_connected(self, session_id: str) -> None:
        self.connected.append(session_id)

    async def client_disconnected(self, session_id: str) -> None:
        self.disconnected.append(session_id)

    def messages_from(self, session_id: str) -> list[str]:
        return [m for sid, m in self.messages if sid == session_id]


class RecordingClientListener(ClientListener):

    def __init__(self):
        self.events: list[str] = []
        self.messages: list[str] = []

    async def message_received(self, message: str) -> None:
        self.events.append("message")
        self.messages.append(message)

    async def connected(self) -> None:
        self.events.append("connected")

    async def disconnected(self) -> None:
        self.events.append("disconnected")
