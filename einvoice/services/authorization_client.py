"""
Authorization clients: send a signed request and interpret the Authority's reply.

Transport and protocol failures come back as rejected AuthorizationResults; they
are never raised to the caller. Resubmitting the same (sales point, document
type, number) returns the authorization already issued for it.
"""

import logging
import secrets
import threading
from datetime import timedelta

import requests
from django.utils import timezone
from lxml import etree

from einvoice.domain import AuthorizationResult, SignedRequest
from einvoice.exceptions import NumberingError
from einvoice.services.authority_logger import log_authority_call
from einvoice.services.http_client import DEFAULT_TIMEOUT, authority_request, authority_session
from einvoice.services.response_parser import (
    failure_reason_from,
    parse_cae_response,
    parse_comp_consultar_response,
    parse_last_authorized_response,
)
from einvoice.services.soap_envelope import (
    build_cae_request_envelope,
    build_comp_consultar_envelope,
    build_last_authorized_envelope,
    wsfe_headers,
)

logger = logging.getLogger("einvoice")

AUTHORIZATION_CODE_LENGTH = 14
AUTHORIZATION_VALIDITY_DAYS = 10
CANCELLED_REASON = "Submission cancelled before reaching the Authority"
PREVIOUSLY_ISSUED_REMARK = "Authorization previously issued for this document number"


def _is_cancelled(cancel) -> bool:
    return cancel is not None and cancel.is_set()


def generate_simulated_code() -> str:
    """Pseudo-random 14-digit authorization code, zero padded."""
    return str(secrets.randbelow(10**AUTHORIZATION_CODE_LENGTH)).zfill(AUTHORIZATION_CODE_LENGTH)


class SimulatedAuthorityClient:
    """
    Development stand-in for the Authority. Always accepts; expiry is the
    processing date plus the validity window. Issued codes are remembered
    per idempotency key for the lifetime of the instance.
    """

    def __init__(self, code_generator=generate_simulated_code):
        self.code_generator = code_generator
        self._lock = threading.Lock()
        self._issued: dict[tuple[int, int, int], AuthorizationResult] = {}

    def submit(self, signed: SignedRequest, timeout: float | None = None, cancel=None) -> AuthorizationResult:
        if _is_cancelled(cancel):
            return AuthorizationResult.rejected(CANCELLED_REASON)
        key = signed.idempotency_key
        with self._lock:
            existing = self._issued.get(key)
            if existing is not None:
                logger.info("Simulated Authority: returning previous authorization for %s", key)
                return existing
            result = AuthorizationResult.approved(
                authorization_code=self.code_generator(),
                expiry_date=timezone.localdate() + timedelta(days=AUTHORIZATION_VALIDITY_DAYS),
                remarks=["Invoice authorized"],
            )
            self._issued[key] = result
        logger.info("Simulated Authority: authorized PtoVta=%s CbteTipo=%s CbteNro=%s", *key)
        return result

    def last_authorized_number(self, document_type_code: int, sales_point: int, auth=None, timeout=None) -> int:
        with self._lock:
            numbers = [
                number
                for (pv, code, number) in self._issued
                if pv == sales_point and code == document_type_code
            ]
        return max(numbers, default=0)


class SoapAuthorityClient:
    """Invoicing web service client (FECAESolicitar, FECompConsultar, FECompUltimoAutorizado)."""

    def __init__(self, endpoint: str, session: requests.Session | None = None, default_timeout: float = DEFAULT_TIMEOUT):
        self.endpoint = endpoint
        self.session = session or authority_session()
        self.default_timeout = default_timeout

    def _post(self, operation: str, envelope: bytes, timeout: float | None) -> requests.Response:
        return authority_request(
            self.endpoint,
            data=envelope,
            headers=wsfe_headers(operation),
            timeout=timeout or self.default_timeout,
            session=self.session,
        )

    def submit(self, signed: SignedRequest, timeout: float | None = None, cancel=None) -> AuthorizationResult:
        """
        FECAESolicitar. Cancellation is honoured until the request is sent;
        once the Authority has answered its decision is returned.
        """
        if _is_cancelled(cancel):
            return AuthorizationResult.rejected(CANCELLED_REASON)

        payload = {"Auth": signed.auth, "FeCAEReq": signed.document.to_dict()}
        envelope = build_cae_request_envelope(signed)
        try:
            response = self._post("FECAESolicitar", envelope, timeout)
        except requests.Timeout as e:
            log_authority_call(self.endpoint, "FECAESolicitar", payload, error=e)
            return AuthorizationResult.rejected(
                f"Authority did not answer within {timeout or self.default_timeout}s"
            )
        except requests.RequestException as e:
            log_authority_call(self.endpoint, "FECAESolicitar", payload, error=e)
            return AuthorizationResult.rejected(f"Authority unreachable: {e}")

        log_authority_call(self.endpoint, "FECAESolicitar", payload, response=response)
        try:
            parsed = parse_cae_response(response.content)
        except etree.XMLSyntaxError as e:
            return AuthorizationResult.rejected(
                f"Malformed Authority response (HTTP {response.status_code}): {e}"
            )

        if parsed.approved:
            if parsed.cae_expiry is None:
                return AuthorizationResult.rejected("Authority approved without an expiry date (CAEFchVto)")
            return AuthorizationResult.approved(parsed.cae, parsed.cae_expiry, remarks=parsed.observations)

        if parsed.fault is None:
            existing = self.find_existing_authorization(signed, timeout=timeout)
            if existing is not None:
                code, expiry = existing
                logger.info("Authority already issued %s for %s", code, signed.idempotency_key)
                return AuthorizationResult.approved(code, expiry, remarks=[PREVIOUSLY_ISSUED_REMARK])

        return AuthorizationResult.rejected(
            failure_reason_from(parsed, response.status_code),
            remarks=parsed.observations,
        )

    def find_existing_authorization(self, signed: SignedRequest, timeout: float | None = None):
        """(code, expiry) already issued for the request's document number, or None."""
        sales_point, document_type_code, number = signed.idempotency_key
        envelope = build_comp_consultar_envelope(signed.auth, document_type_code, sales_point, number)
        try:
            response = self._post("FECompConsultar", envelope, timeout)
        except requests.RequestException as e:
            log_authority_call(self.endpoint, "FECompConsultar", error=e)
            return None
        log_authority_call(self.endpoint, "FECompConsultar", response=response)
        try:
            return parse_comp_consultar_response(response.content)
        except etree.XMLSyntaxError:
            logger.warning("FECompConsultar: malformed response (HTTP %s)", response.status_code)
            return None

    def last_authorized_number(self, document_type_code: int, sales_point: int, auth: dict, timeout=None) -> int:
        """
        FECompUltimoAutorizado.

        Raises:
            NumberingError: Authority unreachable or the reply carries no number.
        """
        envelope = build_last_authorized_envelope(auth, sales_point, document_type_code)
        try:
            response = self._post("FECompUltimoAutorizado", envelope, timeout)
        except requests.RequestException as e:
            log_authority_call(self.endpoint, "FECompUltimoAutorizado", error=e)
            raise NumberingError(f"Authority unreachable: {e}") from e
        log_authority_call(self.endpoint, "FECompUltimoAutorizado", response=response)
        try:
            number, errors = parse_last_authorized_response(response.content)
        except etree.XMLSyntaxError as e:
            raise NumberingError(f"Malformed Authority response: {e}") from e
        if number is None:
            raise NumberingError("; ".join(errors))
        return number
