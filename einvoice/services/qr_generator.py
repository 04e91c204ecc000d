"""
Verification QR for authorized invoices.
Content: https://www.afip.gob.ar/fe/qr/?p=<base64(JSON payload)>.
Payload field order is fixed: ver, fecha, cuit, ptoVta, tipoCmp, nroCmp, importe,
moneda, ctz, tipoDocRec, nroDocRec, tipoCodAut, codAut.
"""

import base64
import json
import logging
from collections import OrderedDict
from io import BytesIO
from urllib.parse import unquote, urlsplit

import qrcode

from einvoice.domain import AuthorityCredentials, Invoice, VerificationImage
from einvoice.exceptions import EncodingError
from einvoice.services.amount_calculator import compute_totals
from einvoice.services.document_mapping import (
    CURRENCY_CODE,
    EXCHANGE_RATE,
    RECIPIENT_DOC_TYPE_TAX_ID,
    get_document_type_code,
)

logger = logging.getLogger("einvoice")

VERIFICATION_URL = "https://www.afip.gob.ar/fe/qr/"
PAYLOAD_VERSION = 1
AUTHORIZATION_TYPE_ELECTRONIC = "E"

PAYLOAD_FIELDS = (
    "ver", "fecha", "cuit", "ptoVta", "tipoCmp", "nroCmp", "importe",
    "moneda", "ctz", "tipoDocRec", "nroDocRec", "tipoCodAut", "codAut",
)


def _numeric(value):
    """Digits-only identifiers as int; anything else kept as text."""
    digits = "".join(ch for ch in str(value) if ch.isdigit())
    return int(digits) if digits else str(value)


def build_verification_payload(
    invoice: Invoice,
    credentials: AuthorityCredentials,
    authorization_code: str,
) -> OrderedDict:
    document_type_code, _ = get_document_type_code(invoice.document_kind)
    total = compute_totals(invoice.lines).total_amount
    return OrderedDict([
        ("ver", PAYLOAD_VERSION),
        ("fecha", invoice.issue_date.isoformat()),
        ("cuit", _numeric(credentials.tax_id)),
        ("ptoVta", int(invoice.sales_point)),
        ("tipoCmp", document_type_code),
        ("nroCmp", int(invoice.sequence_number)),
        ("importe", float(total)),
        ("moneda", CURRENCY_CODE),
        ("ctz", EXCHANGE_RATE),
        ("tipoDocRec", RECIPIENT_DOC_TYPE_TAX_ID),
        ("nroDocRec", _numeric(invoice.recipient.document_number)),
        ("tipoCodAut", AUTHORIZATION_TYPE_ELECTRONIC),
        ("codAut", str(authorization_code)),
    ])


def serialize_payload(payload: dict) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=True)


def encode_verification_content(payload: dict) -> str:
    encoded = base64.b64encode(serialize_payload(payload).encode("utf-8")).decode()
    return f"{VERIFICATION_URL}?p={encoded}"


def decode_verification_content(content: str) -> OrderedDict:
    """
    Inverse of encode_verification_content; keeps field order.
    The parameter is plain base64 ("+" is not a space), so the query is split by hand.
    """
    encoded = ""
    for part in urlsplit(content).query.split("&"):
        name, _, value = part.partition("=")
        if name == "p":
            encoded = unquote(value)
            break
    if not encoded:
        raise ValueError("Verification content has no payload parameter")
    raw = base64.b64decode(encoded).decode("utf-8")
    return json.loads(raw, object_pairs_hook=OrderedDict)


def render_qr_png(content: str) -> bytes:
    """
    Raises:
        EncodingError: If the QR image cannot be produced.
    """
    try:
        image = qrcode.make(content)
        buffer = BytesIO()
        image.save(buffer, format="PNG")
    except Exception as e:
        raise EncodingError(f"Could not encode verification QR: {e}") from e
    return buffer.getvalue()


def generate_verification_image(
    invoice: Invoice,
    credentials: AuthorityCredentials,
    authorization_code: str,
) -> VerificationImage:
    payload = build_verification_payload(invoice, credentials, authorization_code)
    content = encode_verification_content(payload)
    png = render_qr_png(content)
    logger.debug("Verification QR generated for CbteNro=%s (%d bytes)", invoice.sequence_number, len(png))
    return VerificationImage(content=content, png=png)


class VerificationCodeGenerator:
    """Callable wrapper so the service can take the generator as a collaborator."""

    def generate(self, invoice, credentials, authorization_code) -> VerificationImage:
        return generate_verification_image(invoice, credentials, authorization_code)
