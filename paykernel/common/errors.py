"""Exception hierarchy for the signing and trust core."""


class PayKernelError(Exception):
    """Base exception for all paykernel errors."""
    pass


class ConfigurationError(PayKernelError):
    """Client configuration is invalid or incomplete."""
    pass


class KeyFormatError(PayKernelError):
    """Key or certificate material cannot be parsed."""
    pass


class BadCertError(KeyFormatError):
    """Certificate cannot be loaded or failed validation."""
    pass


class ProtocolMismatchError(PayKernelError):
    """Response body does not have the expected envelope shape."""
    pass


class VerificationError(PayKernelError):
    """Response signature did not verify; the payload must not be trusted."""
    pass


class UnsupportedMethodError(PayKernelError):
    """Page generation was asked for an HTTP method other than GET/POST."""
    pass


class UnsupportedContentModeError(PayKernelError):
    """Request body was asked for a content mode other than form/multipart."""
    pass
