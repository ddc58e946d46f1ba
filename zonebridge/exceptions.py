"""Exceptions for zonebridge."""


class BridgeError(Exception):
    """Base exception for zonebridge."""


class MalformedFrameError(BridgeError):
    """Received frame could not be parsed (truncated, bad hex, bad checksum)."""


class UnknownOpcodeError(BridgeError):
    """Frame shape was recognised but the command or attribute code was not."""


class OutOfRangeTargetError(BridgeError, ValueError):
    """Command addressed to a zone or group outside the configured range."""


class BridgeTransportError(BridgeError):
    """Send or connect on the transport failed."""


class BridgeConnectionError(BridgeTransportError):
    """Connection to device failed or is not established."""


class BridgeTimeoutError(BridgeTransportError):
    """Transport operation timed out."""


class BridgeConfigError(BridgeError, ValueError):
    """Bridge configuration is invalid."""
