"""
Authority code tables. Mapping layer only; read-only lookups.
Document types are the "A" letter codes (issuer and recipient both VAT registered).
"""

from decimal import Decimal
from types import MappingProxyType

DEFAULT_DOCUMENT_TYPE_CODE = 1

# CbteTipo per the Authority's published table: 2 is Nota de Debito A, 3 is Nota de Credito A.
# Earlier integrations that map credit note to 2 get the debit note code back.
DOCUMENT_TYPE_CODES = MappingProxyType({
    "INVOICE": 1,
    "DEBIT_NOTE": 2,
    "CREDIT_NOTE": 3,
})

# AlicIva Id per VAT rate
VAT_RATE_CODES = MappingProxyType({
    Decimal("0"): 3,
    Decimal("10.5"): 4,
    Decimal("21"): 5,
    Decimal("27"): 6,
})

CONCEPT_GOODS = 1
RECIPIENT_DOC_TYPE_TAX_ID = 80
CURRENCY_CODE = "PES"
EXCHANGE_RATE = 1


def get_document_type_code(document_kind) -> tuple[int, bool]:
    """
    Map a document kind (DocumentKind or its string value) to CbteTipo.
    Returns (code, fell_back). Unknown kinds fall back to the Invoice code.
    """
    key = str(getattr(document_kind, "value", document_kind) or "").strip().upper()
    code = DOCUMENT_TYPE_CODES.get(key)
    if code is None:
        return DEFAULT_DOCUMENT_TYPE_CODE, True
    return code, False


def get_vat_rate_code(tax_rate_percent) -> int | None:
    """AlicIva Id for a rate, or None when the rate is not one the Authority accepts."""
    return VAT_RATE_CODES.get(Decimal(str(tax_rate_percent)).normalize())
