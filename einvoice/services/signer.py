"""
Attaches the Auth block (Token, Sign, Cuit) to a request document.
Only component that reads certificate and password material. Never logs it.
Signing is atomic: a full SignedRequest or SigningError, nothing in between.
"""

import logging
import threading
from collections import OrderedDict

from einvoice.domain import AuthorityCredentials, RequestDocument, SignedRequest
from einvoice.exceptions import SigningError
from einvoice.services.certificate_utils import ensure_certificate_valid, load_certificate_bundle

logger = logging.getLogger("einvoice")


class Signer:
    """
    Loads certificate material once (first use) and keeps it read-only.
    Expiry is checked on every signature.
    """

    def __init__(self, ticket_provider):
        self.ticket_provider = ticket_provider
        self._lock = threading.Lock()
        self._bundle = None
        self._bundle_path = None

    def _certificate_bundle(self, credentials: AuthorityCredentials):
        with self._lock:
            if self._bundle is None or self._bundle_path != credentials.certificate_path:
                self._bundle = load_certificate_bundle(
                    credentials.certificate_path, credentials.certificate_password
                )
                self._bundle_path = credentials.certificate_path
            return self._bundle

    def auth_block(self, credentials: AuthorityCredentials, timeout: float | None = None) -> dict:
        certificate, private_key = self._certificate_bundle(credentials)
        ensure_certificate_valid(certificate)
        ticket = self.ticket_provider.get_ticket(credentials, certificate, private_key, timeout=timeout)
        if not ticket.token or not ticket.sign:
            raise SigningError("Access ticket without token or sign")
        return OrderedDict([
            ("Token", ticket.token),
            ("Sign", ticket.sign),
            ("Cuit", credentials.tax_id),
        ])

    def sign(
        self,
        document: RequestDocument,
        credentials: AuthorityCredentials,
        timeout: float | None = None,
    ) -> SignedRequest:
        """
        Return the document with its Auth block.

        Raises:
            SigningError: Certificate missing/invalid/expired or ticket unavailable.
        """
        if not credentials.tax_id:
            raise SigningError("Issuer tax id is not configured")
        auth = self.auth_block(credentials, timeout=timeout)
        logger.debug(
            "Request signed: PtoVta=%s CbteTipo=%s CbteNro=%s",
            document.sales_point, document.document_type_code, document.sequence_number,
        )
        return SignedRequest(document=document, auth=auth)
