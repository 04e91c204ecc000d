"""
SOAP envelopes for the Authority web services.
Invoicing service (WSFEv1) uses SOAP 1.2; the authentication service (WSAA) uses SOAP 1.1.
Mappings are serialized in insertion order; lists repeat the element name.
"""

from lxml import etree

SOAP12_NS = "http://www.w3.org/2003/05/soap-envelope"
SOAP11_NS = "http://schemas.xmlsoap.org/soap/envelope/"
WSFE_NS = "http://ar.gov.afip.dif.FEV1/"
WSAA_NS = "http://wsaa.view.sua.dvadac.desein.afip.gov"

_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=False)


def _text(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def append_mapping(parent, mapping: dict, namespace: str) -> None:
    """Append mapping items as child elements of parent, recursively."""
    for key, value in mapping.items():
        items = value if isinstance(value, list) else [value]
        for item in items:
            child = etree.SubElement(parent, f"{{{namespace}}}{key}")
            if isinstance(item, dict):
                append_mapping(child, item, namespace)
            elif item is not None:
                child.text = _text(item)


def build_wsfe_envelope(operation: str, body: dict) -> bytes:
    """SOAP 1.2 envelope for an invoicing service operation."""
    envelope = etree.Element(
        f"{{{SOAP12_NS}}}Envelope", nsmap={"soap": SOAP12_NS, "ar": WSFE_NS}
    )
    etree.SubElement(envelope, f"{{{SOAP12_NS}}}Header")
    soap_body = etree.SubElement(envelope, f"{{{SOAP12_NS}}}Body")
    op = etree.SubElement(soap_body, f"{{{WSFE_NS}}}{operation}")
    append_mapping(op, body, WSFE_NS)
    return etree.tostring(envelope, xml_declaration=True, encoding="UTF-8")


def build_cae_request_envelope(signed_request) -> bytes:
    return build_wsfe_envelope(
        "FECAESolicitar",
        {"Auth": signed_request.auth, "FeCAEReq": signed_request.document.to_dict()},
    )


def build_comp_consultar_envelope(auth: dict, document_type_code: int, sales_point: int, number: int) -> bytes:
    return build_wsfe_envelope(
        "FECompConsultar",
        {
            "Auth": auth,
            "FeCompConsReq": {
                "CbteTipo": document_type_code,
                "CbteNro": number,
                "PtoVta": sales_point,
            },
        },
    )


def build_last_authorized_envelope(auth: dict, sales_point: int, document_type_code: int) -> bytes:
    return build_wsfe_envelope(
        "FECompUltimoAutorizado",
        {"Auth": auth, "PtoVta": sales_point, "CbteTipo": document_type_code},
    )


def build_login_cms_envelope(cms_base64: str) -> bytes:
    """SOAP 1.1 loginCms envelope carrying the base64 CMS of the login ticket request."""
    envelope = etree.Element(
        f"{{{SOAP11_NS}}}Envelope", nsmap={"soapenv": SOAP11_NS, "wsaa": WSAA_NS}
    )
    etree.SubElement(envelope, f"{{{SOAP11_NS}}}Header")
    soap_body = etree.SubElement(envelope, f"{{{SOAP11_NS}}}Body")
    login = etree.SubElement(soap_body, f"{{{WSAA_NS}}}loginCms")
    etree.SubElement(login, f"{{{WSAA_NS}}}in0").text = cms_base64
    return etree.tostring(envelope, xml_declaration=True, encoding="UTF-8")


def wsfe_headers(operation: str) -> dict[str, str]:
    return {
        "Content-Type": f'application/soap+xml; charset=utf-8; action="{WSFE_NS}{operation}"',
    }


def wsaa_headers() -> dict[str, str]:
    return {"Content-Type": "text/xml; charset=utf-8", "SOAPAction": '""'}


def parse_xml(content: bytes | str):
    """Parse a response body. Raises lxml.etree.XMLSyntaxError on malformed XML."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return etree.fromstring(content, parser=_PARSER)


def find_text(root, name: str) -> str | None:
    """Text of the first descendant with local name `name`, any namespace."""
    node = root.find(f".//{{*}}{name}")
    if node is None or node.text is None:
        return None
    return node.text.strip()


def soap_fault_message(root) -> str | None:
    """faultstring (SOAP 1.1) or Reason/Text (SOAP 1.2) when the body is a Fault."""
    fault = root.find(".//{*}Fault")
    if fault is None:
        return None
    return (
        find_text(fault, "faultstring")
        or find_text(fault, "Text")
        or "SOAP fault"
    )
