"""
Parse Authority invoicing service replies and expose rejection messages.
"""

from dataclasses import dataclass, field
from datetime import date, datetime

from einvoice.services.soap_envelope import find_text, parse_xml, soap_fault_message

RESULT_APPROVED = "A"
RESULT_REJECTED = "R"


@dataclass(frozen=True)
class CaeResponse:
    result: str
    cae: str | None = None
    cae_expiry: date | None = None
    observations: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    fault: str | None = None

    @property
    def approved(self) -> bool:
        return self.result == RESULT_APPROVED and bool(self.cae)


def parse_authority_date(value: str | None) -> date | None:
    """yyyymmdd -> date. None when empty or unparseable."""
    if not value:
        return None
    try:
        return datetime.strptime(value.strip(), "%Y%m%d").date()
    except ValueError:
        return None


def _extract_messages(root, container: str, item: str) -> list[str]:
    """
    Collect "code: message" strings from container/item nodes
    (Errors/Err, Observaciones/Obs, Events/Evt).
    """
    messages: list[str] = []
    for node in root.iterfind(f".//{{*}}{container}/{{*}}{item}"):
        code = find_text(node, "Code")
        msg = find_text(node, "Msg") or ""
        messages.append(f"{code}: {msg}" if code else msg)
    return messages


def parse_cae_response(content: bytes | str) -> CaeResponse:
    """
    Parse an FECAESolicitar reply. Raises lxml.etree.XMLSyntaxError on malformed XML.
    Detail Resultado wins over header Resultado when both are present.
    """
    root = parse_xml(content)
    fault = soap_fault_message(root)
    if fault:
        return CaeResponse(result=RESULT_REJECTED, fault=fault, errors=[fault])

    detail = root.find(".//{*}FECAEDetResponse")
    scope = detail if detail is not None else root
    result = (find_text(scope, "Resultado") or find_text(root, "Resultado") or "").upper()
    cae = find_text(scope, "CAE") if detail is not None else None
    expiry = parse_authority_date(find_text(scope, "CAEFchVto")) if detail is not None else None

    observations = _extract_messages(root, "Observaciones", "Obs")
    errors = _extract_messages(root, "Errors", "Err")

    return CaeResponse(
        result=result or RESULT_REJECTED,
        cae=cae or None,
        cae_expiry=expiry,
        observations=observations,
        errors=errors,
    )


def parse_comp_consultar_response(content: bytes | str) -> tuple[str, date] | None:
    """(authorization code, expiry) of an already-authorized document, or None."""
    root = parse_xml(content)
    if soap_fault_message(root):
        return None
    result_get = root.find(".//{*}ResultGet")
    if result_get is None:
        return None
    if (find_text(result_get, "Resultado") or "").upper() != RESULT_APPROVED:
        return None
    code = find_text(result_get, "CodAutorizacion")
    expiry = parse_authority_date(find_text(result_get, "FchVto"))
    if not code or expiry is None:
        return None
    return code, expiry


def parse_last_authorized_response(content: bytes | str) -> tuple[int | None, list[str]]:
    """(last authorized number, errors) from an FECompUltimoAutorizado reply."""
    root = parse_xml(content)
    fault = soap_fault_message(root)
    if fault:
        return None, [fault]
    errors = _extract_messages(root, "Errors", "Err")
    number = find_text(root, "CbteNro")
    if number is None or not number.isdigit():
        return None, errors or ["No CbteNro in response"]
    return int(number), errors


def failure_reason_from(response: CaeResponse, status_code: int | None = None) -> str:
    """Single human readable reason for a rejected CAE request."""
    if response.fault:
        return f"Authority fault: {response.fault}"
    messages = response.errors or response.observations
    if messages:
        return "Authority rejected the invoice: " + "; ".join(messages)
    if status_code and status_code >= 400:
        return f"Authority rejected the invoice: HTTP {status_code}"
    return f"Authority rejected the invoice (Resultado={response.result})"
