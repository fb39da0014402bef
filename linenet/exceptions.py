"""
linenet library exceptions.

This module defines all custom exceptions used throughout the library.
"""


class LineError(Exception):
    """Base exception for linenet errors"""
    pass


class LineConnectError(LineError):
    """Raised when a connection cannot be established in time"""
    pass


class LineBindError(LineError):
    """Raised when the server cannot listen on the requested port"""
    pass


class LineIOError(LineError):
    """Raised when reading or writing a live connection fails"""
    pass


class LineEndOfStream(LineError):
    """Raised by a blocking receive when the peer closed the connection gracefully"""
    pass


class LineClosedError(LineError):
    """Raised when an operation is attempted on a closed connection"""
    pass


class LineNotConnectedError(LineError):
    """Raised when an operation needs a connection and there is none"""
    pass


class LineConfigurationError(LineError):
    """Raised when configuration is invalid"""
    pass
