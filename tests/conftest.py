import pytest_asyncio

from linenet import LineServer
from helpers import RecordingServerListener


@pytest_asyncio.fixture
async def server():
    """A server on a free loopback port that replies to every line with the line doubled"""
    listener = RecordingServerListener(reply=lambda message: message + message)
    server = await LineServer.create(0, listener, host="127.0.0.1")
    yield server
    await server.close()
