"""Domain-specific errors for sp108ectl."""


class Sp108eError(Exception):
    """Base error for sp108ectl."""


class InvalidParameterError(Sp108eError):
    """Raised when a command parameter is out of range or not valid hex."""


class UnknownChipTypeError(Sp108eError):
    """Raised when a chip type name is not in the chip type table."""


class UnknownColorOrderError(Sp108eError):
    """Raised when a color order name is not in the color order table."""


class UnknownAnimationModeError(Sp108eError):
    """Raised when an animation mode is neither a known code nor a known name."""


class MalformedResponseError(Sp108eError):
    """Raised when a status response does not have the expected shape."""


class StaleOrUnavailableError(Sp108eError):
    """Raised when cached status is missing or older than the poll interval."""


class ConfigLoadError(Sp108eError):
    """Raised when reading the configuration file fails."""


class ConfigValidationError(Sp108eError):
    """Raised when the configuration file does not conform to schema or semantics."""


class DeviceSelectionError(Sp108eError):
    """Raised when a device hint cannot resolve a single configured device."""


class TransportError(Sp108eError):
    """Base transport error."""


class TransportConnectError(TransportError):
    """Raised on TCP connect, write or read failures."""


class TransportTimeoutError(TransportError):
    """Raised when the device does not answer within the timeout."""
