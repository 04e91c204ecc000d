"""
FECAESolicitar request builder. One invoice per request (CantReg=1, CbteDesde == CbteHasta).
Decimal only, ROUND_HALF_UP. Amounts are the computed totals, formatted to 2 decimals.
One AlicIva entry per distinct VAT rate present in the lines.
"""

import logging
from collections import OrderedDict
from decimal import Decimal

from einvoice.domain import AuthorityCredentials, Invoice, RequestDocument
from einvoice.exceptions import BuildError, InvalidLineError
from einvoice.services.amount_calculator import (
    TOTALS_TOLERANCE,
    compute_line,
    compute_totals,
    round2,
)
from einvoice.services.document_mapping import (
    CONCEPT_GOODS,
    CURRENCY_CODE,
    EXCHANGE_RATE,
    RECIPIENT_DOC_TYPE_TAX_ID,
    get_document_type_code,
    get_vat_rate_code,
)

logger = logging.getLogger("einvoice")


def _fmt(value: Decimal) -> str:
    return f"{round2(value):.2f}"


def format_authority_date(value) -> str:
    """Calendar date as yyyymmdd (separators stripped)."""
    return value.isoformat().replace("-", "")


def normalize_document_number(value: str) -> str:
    """Tax id without separators ("20-12345678-9" -> "20123456789")."""
    digits = "".join(ch for ch in str(value) if ch.isdigit())
    return digits or str(value).strip()


def validate_invoice_for_build(invoice: Invoice, credentials: AuthorityCredentials) -> None:
    if invoice is None:
        raise BuildError("Invoice is required.")
    if not invoice.lines:
        raise BuildError("Invoice must contain at least one line.")
    if invoice.recipient is None:
        raise BuildError("Recipient is required.")
    missing = invoice.recipient.missing_fields()
    if missing:
        raise BuildError(f"Recipient fields required: {', '.join(missing)}.")
    if invoice.issue_date is None:
        raise BuildError("Issue date is required.")
    if not invoice.sales_point or int(invoice.sales_point) <= 0:
        raise BuildError("Sales point must be a positive integer.")
    if not invoice.sequence_number or int(invoice.sequence_number) <= 0:
        raise BuildError("Sequence number must be a positive integer.")
    if int(invoice.sales_point) != int(credentials.sales_point):
        raise BuildError(
            f"Invoice sales point {invoice.sales_point} does not match configured "
            f"sales point {credentials.sales_point}."
        )


def build_vat_breakdown(lines) -> list[dict]:
    """
    Group lines by VAT rate. Each entry: Id (rate code), BaseImp (net) and Importe (VAT).
    Ordered by rate code so the document is deterministic.
    """
    groups: dict[int, tuple[Decimal, Decimal]] = {}
    for line in lines:
        code = get_vat_rate_code(line.tax_rate_percent)
        if code is None:
            raise BuildError(
                f"Tax rate {line.tax_rate_percent}% is not accepted by the Authority "
                "(allowed: 0, 10.5, 21, 27)."
            )
        tax_amount, _ = compute_line(line.quantity, line.unit_price, line.tax_rate_percent)
        base, tax = groups.get(code, (Decimal("0.00"), Decimal("0.00")))
        groups[code] = (base + round2(line.quantity * line.unit_price), tax + tax_amount)

    return [
        OrderedDict([("Id", code), ("BaseImp", _fmt(base)), ("Importe", _fmt(tax))])
        for code, (base, tax) in sorted(groups.items())
    ]


def build_request_document(invoice: Invoice, credentials: AuthorityCredentials) -> RequestDocument:
    """
    Map an Invoice to the Authority's request document (not yet signed).
    Raises BuildError on missing data, unsupported rates or declared totals
    that differ from the computed ones by more than 0.01.
    """
    validate_invoice_for_build(invoice, credentials)

    try:
        totals = compute_totals(invoice.lines)
    except InvalidLineError as e:
        raise BuildError(f"Invalid invoice line: {e}") from e

    for name in ("net_amount", "tax_amount", "total_amount"):
        declared = getattr(invoice, name)
        if abs(declared - getattr(totals, name)) > TOTALS_TOLERANCE:
            raise BuildError(
                f"Declared {name} {declared} does not match computed {getattr(totals, name)}."
            )

    remarks: list[str] = []
    document_type_code, fell_back = get_document_type_code(invoice.document_kind)
    if fell_back:
        remark = (
            f"Unknown document kind {invoice.document_kind!r}; "
            f"using Invoice document type code {document_type_code}."
        )
        logger.warning(remark)
        remarks.append(remark)

    header = OrderedDict([
        ("CantReg", 1),
        ("PtoVta", int(invoice.sales_point)),
        ("CbteTipo", document_type_code),
    ])
    detail = OrderedDict([
        ("Concepto", CONCEPT_GOODS),
        ("DocTipo", RECIPIENT_DOC_TYPE_TAX_ID),
        ("DocNro", normalize_document_number(invoice.recipient.document_number)),
        ("CbteDesde", int(invoice.sequence_number)),
        ("CbteHasta", int(invoice.sequence_number)),
        ("CbteFch", format_authority_date(invoice.issue_date)),
        ("ImpTotal", _fmt(totals.total_amount)),
        ("ImpTotConc", _fmt(Decimal("0"))),
        ("ImpNeto", _fmt(totals.net_amount)),
        ("ImpOpEx", _fmt(Decimal("0"))),
        ("ImpIVA", _fmt(totals.tax_amount)),
        ("ImpTrib", _fmt(Decimal("0"))),
        ("MonId", CURRENCY_CODE),
        ("MonCotiz", EXCHANGE_RATE),
        ("Iva", {"AlicIva": build_vat_breakdown(invoice.lines)}),
    ])

    logger.debug(
        "Request built: PtoVta=%s CbteTipo=%s CbteNro=%s ImpTotal=%s",
        header["PtoVta"], document_type_code, invoice.sequence_number, detail["ImpTotal"],
    )
    return RequestDocument(header=header, detail=detail, remarks=tuple(remarks))
