class WalletError(Exception):
    """Base class for wallet pass errors."""


class WalletNotConfigured(WalletError):
    """Raised when pass signing is requested but no signing identity is configured."""


class CertificateConfigError(WalletError):
    """Raised when the signing identity is missing, unparseable, expired or inconsistent."""


class PassGenerationError(WalletError):
    """Base class for failures while producing a pass archive.

    Attributes:
        stage: The last pipeline stage reached before the failure, if known.
    """

    stage: str | None = None


class SigningFailed(PassGenerationError):
    """Raised when the external signing tool rejects the input or exits with an error."""


class SigningTimeout(PassGenerationError):
    """Raised when the external signing tool exceeds its time bound."""


class PackagingFailed(PassGenerationError):
    """Raised when the pass archive cannot be assembled."""


class PassNotFound(WalletError):
    """Raised when a serial number does not belong to any issued pass."""


class DeviceNotRegistered(WalletError):
    """Raised when no active registration matches a device request."""
