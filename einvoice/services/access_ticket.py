"""
Access tickets (token + sign) from the Authority's authentication service (WSAA).

Flow: build loginTicketRequest XML -> CMS sign with the issuer certificate ->
loginCms SOAP call -> parse loginTicketResponse credentials.
Tickets are cached per (tax id, service) until shortly before expiry.
"""

import base64
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import requests
from django.utils.dateparse import parse_datetime
from lxml import etree

from einvoice.exceptions import SigningError
from einvoice.services.authority_logger import log_authority_call
from einvoice.services.http_client import authority_request, authority_session
from einvoice.services.signature_engine import SignatureEngine
from einvoice.services.soap_envelope import (
    build_login_cms_envelope,
    find_text,
    parse_xml,
    soap_fault_message,
    wsaa_headers,
)

logger = logging.getLogger("einvoice")

TICKET_TTL = timedelta(hours=12)
CLOCK_SKEW = timedelta(minutes=10)
RENEWAL_MARGIN = timedelta(minutes=5)


@dataclass(frozen=True)
class AccessTicket:
    token: str = field(repr=False)
    sign: str = field(repr=False)
    expires_at: datetime

    def is_valid(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now + RENEWAL_MARGIN < self.expires_at


def build_login_ticket_request(
    service: str,
    now: datetime | None = None,
    ttl: timedelta = TICKET_TTL,
    unique_id: int | None = None,
) -> bytes:
    """
    loginTicketRequest version 1.0.
    generationTime is set slightly in the past to tolerate clock skew with the Authority.
    """
    now = now or datetime.now(timezone.utc)
    if unique_id is None:
        unique_id = uuid.uuid4().int % 2**32
    root = etree.Element("loginTicketRequest", version="1.0")
    header = etree.SubElement(root, "header")
    etree.SubElement(header, "uniqueId").text = str(unique_id)
    etree.SubElement(header, "generationTime").text = (now - CLOCK_SKEW).isoformat(timespec="seconds")
    etree.SubElement(header, "expirationTime").text = (now + ttl).isoformat(timespec="seconds")
    etree.SubElement(root, "service").text = service
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8")


def parse_login_ticket_response(content: bytes | str) -> AccessTicket:
    """
    Extract token, sign and expirationTime from a loginCms reply.
    Raises SigningError on SOAP faults or incomplete tickets.
    """
    try:
        root = parse_xml(content)
        fault = soap_fault_message(root)
        if fault:
            raise SigningError(f"Authentication service fault: {fault}")
        inner = find_text(root, "loginCmsReturn")
        ticket_root = parse_xml(inner) if inner else root
    except etree.XMLSyntaxError as e:
        raise SigningError(f"Malformed login ticket response: {e}") from e

    token = find_text(ticket_root, "token")
    sign = find_text(ticket_root, "sign")
    expires_at = parse_datetime(find_text(ticket_root, "expirationTime") or "")
    if not token or not sign or expires_at is None:
        raise SigningError("Login ticket response without token, sign or expirationTime")
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return AccessTicket(token=token, sign=sign, expires_at=expires_at)


class SimulatedTicketProvider:
    """Placeholder credentials for development; the Authority is never contacted."""

    token = "SIMULATED_TOKEN"
    sign = "SIMULATED_SIGNATURE"

    def get_ticket(self, credentials, certificate, private_key, timeout=None) -> AccessTicket:
        return AccessTicket(
            token=self.token,
            sign=self.sign,
            expires_at=datetime.now(timezone.utc) + TICKET_TTL,
        )


class LoginTicketProvider:
    """Obtains and caches access tickets from the authentication service."""

    def __init__(self, session: requests.Session | None = None):
        self._session = session or authority_session()
        self._lock = threading.Lock()
        self._tickets: dict[tuple[str, str], AccessTicket] = {}

    def get_ticket(self, credentials, certificate, private_key, timeout=None) -> AccessTicket:
        key = (credentials.tax_id, credentials.service_name)
        with self._lock:
            cached = self._tickets.get(key)
            if cached and cached.is_valid():
                return cached
            ticket = self._request_ticket(credentials, certificate, private_key, timeout)
            self._tickets[key] = ticket
            return ticket

    def _request_ticket(self, credentials, certificate, private_key, timeout) -> AccessTicket:
        tra = build_login_ticket_request(credentials.service_name)
        try:
            cms = SignatureEngine(certificate, private_key).sign_cms(tra)
        except (ValueError, TypeError) as e:
            raise SigningError(f"Could not sign login ticket request: {e}") from e
        envelope = build_login_cms_envelope(base64.b64encode(cms).decode())

        endpoint = credentials.auth_endpoint
        try:
            response = authority_request(
                endpoint,
                data=envelope,
                headers=wsaa_headers(),
                timeout=timeout,
                session=self._session,
            )
        except requests.RequestException as e:
            log_authority_call(endpoint=endpoint, operation="loginCms", error=e)
            raise SigningError(f"Authentication service unavailable: {e}") from e

        log_authority_call(endpoint=endpoint, operation="loginCms", response=response)
        ticket = parse_login_ticket_response(response.content)
        logger.info(
            "Access ticket obtained for service %s, expires %s",
            credentials.service_name, ticket.expires_at.isoformat(),
        )
        return ticket
