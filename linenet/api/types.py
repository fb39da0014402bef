from enum import Enum

from ..io.connection import ConnectionConst


class Const:
    # Client defaults
    DEFAULT_HOST = "127.0.0.1"
    DEFAULT_PORT = 8000
    CONNECT_TIMEOUT = ConnectionConst.CONNECT_TIMEOUT # seconds

    # Server defaults
    LISTEN_HOST = "0.0.0.0"
    BACKLOG = 100

    # Wire
    ENCODING = ConnectionConst.ENCODING
    LINE_LIMIT = ConnectionConst.LINE_LIMIT


class ClientState(Enum):
    DISCONNECTED = 0
    CONNECTING = 1
    CONNECTED = 2
