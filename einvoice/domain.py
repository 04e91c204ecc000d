"""
Domain types for electronic invoice authorization.
Money is Decimal throughout; every type is immutable once built.
"""

import base64
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from einvoice.exceptions import InvalidLineError
from einvoice.services.amount_calculator import compute_line, round2


def _d(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class DocumentKind(str, Enum):
    INVOICE = "INVOICE"
    CREDIT_NOTE = "CREDIT_NOTE"
    DEBIT_NOTE = "DEBIT_NOTE"


class Environment(str, Enum):
    TESTING = "testing"
    PRODUCTION = "production"


@dataclass(frozen=True)
class Recipient:
    document_type: str
    document_number: str
    legal_name: str
    address: str
    tax_condition: str

    def missing_fields(self) -> list[str]:
        """Names of required fields that are empty or blank."""
        return [
            name
            for name in ("document_type", "document_number", "legal_name", "address", "tax_condition")
            if not str(getattr(self, name) or "").strip()
        ]


@dataclass(frozen=True)
class InvoiceLine:
    """
    One billed item. Tax and line total are always derived from
    quantity, unit price and rate; they cannot be supplied.
    """

    description: str
    quantity: Decimal
    unit_price: Decimal
    tax_rate_percent: Decimal

    def __post_init__(self):
        object.__setattr__(self, "quantity", _d(self.quantity))
        object.__setattr__(self, "unit_price", _d(self.unit_price))
        object.__setattr__(self, "tax_rate_percent", _d(self.tax_rate_percent))
        if not str(self.description or "").strip():
            raise InvalidLineError("Line description is required.")
        compute_line(self.quantity, self.unit_price, self.tax_rate_percent)

    @property
    def net_amount(self) -> Decimal:
        return round2(self.quantity * self.unit_price)

    @property
    def tax_amount(self) -> Decimal:
        return compute_line(self.quantity, self.unit_price, self.tax_rate_percent)[0]

    @property
    def line_total(self) -> Decimal:
        return compute_line(self.quantity, self.unit_price, self.tax_rate_percent)[1]


@dataclass(frozen=True)
class Invoice:
    document_kind: DocumentKind | str
    sales_point: int
    sequence_number: int
    issue_date: date
    recipient: Recipient
    lines: tuple[InvoiceLine, ...]
    net_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    notes: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "lines", tuple(self.lines or ()))
        object.__setattr__(self, "net_amount", _d(self.net_amount))
        object.__setattr__(self, "tax_amount", _d(self.tax_amount))
        object.__setattr__(self, "total_amount", _d(self.total_amount))


@dataclass(frozen=True)
class AuthorityCredentials:
    """Process-wide Authority configuration. Loaded once, read-only afterwards."""

    tax_id: str
    sales_point: int
    certificate_path: str
    certificate_password: str = field(repr=False)
    endpoint: str
    auth_endpoint: str
    environment: Environment = Environment.TESTING
    service_name: str = "wsfe"


@dataclass(frozen=True)
class RequestDocument:
    """Unsigned FECAESolicitar body: FeCabReq header plus one FECAEDetRequest."""

    header: dict
    detail: dict
    remarks: tuple[str, ...] = ()

    @property
    def sales_point(self) -> int:
        return self.header["PtoVta"]

    @property
    def document_type_code(self) -> int:
        return self.header["CbteTipo"]

    @property
    def sequence_number(self) -> int:
        return self.detail["CbteDesde"]

    def to_dict(self) -> dict:
        return {
            "FeCabReq": dict(self.header),
            "FeDetReq": {"FECAEDetRequest": dict(self.detail)},
        }


@dataclass(frozen=True)
class SignedRequest:
    document: RequestDocument
    auth: dict = field(repr=False)

    @property
    def idempotency_key(self) -> tuple[int, int, int]:
        return (
            self.document.sales_point,
            self.document.document_type_code,
            self.document.sequence_number,
        )


@dataclass(frozen=True)
class VerificationImage:
    content: str
    png: bytes = field(repr=False)

    @property
    def data_url(self) -> str:
        return "data:image/png;base64," + base64.b64encode(self.png).decode()


@dataclass(frozen=True)
class AuthorizationResult:
    """Outcome of one submission attempt."""

    authorized: bool
    authorization_code: str | None = None
    expiry_date: date | None = None
    verification_image: VerificationImage | None = None
    remarks: tuple[str, ...] = ()
    failure_reason: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "remarks", tuple(self.remarks or ()))
        if self.authorized:
            if not self.authorization_code or self.expiry_date is None:
                raise ValueError("Authorized result requires authorization_code and expiry_date")
            if self.failure_reason:
                raise ValueError("Authorized result cannot carry a failure_reason")
        else:
            if not self.failure_reason:
                raise ValueError("Rejected result requires a failure_reason")
            if self.authorization_code or self.expiry_date or self.verification_image:
                raise ValueError("Rejected result cannot carry authorization data")

    @classmethod
    def approved(cls, authorization_code: str, expiry_date: date, remarks=()) -> "AuthorizationResult":
        return cls(
            authorized=True,
            authorization_code=authorization_code,
            expiry_date=expiry_date,
            remarks=tuple(remarks),
        )

    @classmethod
    def rejected(cls, failure_reason: str, remarks=()) -> "AuthorizationResult":
        return cls(authorized=False, failure_reason=failure_reason, remarks=tuple(remarks))
