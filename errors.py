class RconError(Exception):
    """Base class for every failure raised by the RCON gateway core."""


class DialError(RconError):
    """Raised when the TCP connection to the game server cannot be opened."""


class HandshakeError(RconError):
    """Raised when ServerConnect does not yield a usable XOR key."""


class AuthError(HandshakeError):
    """Raised when Login is rejected or returns no auth token."""


class InvalidKey(RconError):
    pass


class MalformedFrame(RconError):
    """Raised for truncated headers and bodies that are not JSON objects."""


class RequestTooLarge(RconError):
    pass


class ResponseTooLarge(RconError):
    pass


class ResponseIDMismatch(RconError):
    """The response id does not match the request just sent; the stream is out of sync."""


class ReadError(RconError):
    pass


class WriteError(RconError):
    pass


class NotConnected(RconError):
    """Raised when a command is issued on a client that is not authenticated."""


class SessionNotFound(RconError):
    pass
