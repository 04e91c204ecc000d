"""
Local faults of the authorization pipeline.
Raised to the caller and scoped to a single submission; Authority-side
rejections are never raised, they come back as AuthorizationResult.
"""


class EInvoiceError(Exception):
    """Base class for e-invoice local faults."""


class InvalidLineError(EInvoiceError):
    """Invoice line with non-positive quantity/price or tax rate out of range."""


class BuildError(EInvoiceError):
    """Invoice cannot be mapped to an Authority request document."""


class SigningError(EInvoiceError):
    """Certificate material missing, invalid or expired, or login ticket unavailable."""


class NumberingError(EInvoiceError):
    """Sequence counter source unavailable or lock not acquired in time."""


class EncodingError(EInvoiceError):
    """Verification image could not be encoded."""
