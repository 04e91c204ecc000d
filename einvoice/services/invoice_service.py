"""
Invoice authorization entry point.

Invoice -> request document -> signed request -> Authority -> verification QR.
Construct one InvoiceAuthorizationService at startup and pass it to callers.
Local faults (InvalidLineError, BuildError, SigningError, NumberingError,
EncodingError) raise; Authority rejections return authorized=False.
"""

import logging

from django.conf import settings

from einvoice.domain import AuthorizationResult, AuthorityCredentials, Invoice
from einvoice.services.access_ticket import LoginTicketProvider, SimulatedTicketProvider
from einvoice.services.amount_calculator import Totals, compute_totals, totals_discrepancies
from einvoice.services.authorization_client import SimulatedAuthorityClient, SoapAuthorityClient
from einvoice.services.credentials import load_credentials
from einvoice.services.document_mapping import get_document_type_code
from einvoice.services.numbering import NumberingService
from einvoice.services.qr_generator import VerificationCodeGenerator
from einvoice.services.request_builder import build_request_document
from einvoice.services.signer import Signer

logger = logging.getLogger("einvoice")


class InvoiceAuthorizationService:
    def __init__(
        self,
        credentials: AuthorityCredentials,
        signer: Signer,
        client,
        numbering: NumberingService,
        verification: VerificationCodeGenerator | None = None,
    ):
        self.credentials = credentials
        self.signer = signer
        self.client = client
        self.numbering = numbering
        self.verification = verification or VerificationCodeGenerator()

    def computed_totals(self, invoice: Invoice) -> Totals:
        """Totals derived from the lines, for comparison with the declared ones."""
        return compute_totals(invoice.lines)

    def totals_discrepancies(self, invoice: Invoice) -> list[str]:
        return totals_discrepancies(invoice)

    def submit_invoice(self, invoice: Invoice, timeout: float | None = None, cancel=None) -> AuthorizationResult:
        """
        Authorize one invoice.

        Args:
            invoice: Invoice with lines and declared totals.
            timeout: Seconds allowed for each Authority call.
            cancel: threading.Event; when set before sending, nothing is submitted.

        Raises:
            BuildError, SigningError, EncodingError: local faults, fix and resubmit.
        """
        document = build_request_document(invoice, self.credentials)
        signed = self.signer.sign(document, self.credentials, timeout=timeout)
        reply = self.client.submit(signed, timeout=timeout, cancel=cancel)
        remarks = document.remarks + reply.remarks

        if not reply.authorized:
            logger.warning(
                "Invoice %s-%s not authorized: %s",
                invoice.sales_point, invoice.sequence_number, reply.failure_reason,
            )
            return AuthorizationResult.rejected(reply.failure_reason, remarks=remarks)

        image = self.verification.generate(invoice, self.credentials, reply.authorization_code)
        logger.info(
            "Invoice %s-%s authorized: code=%s expires=%s",
            invoice.sales_point, invoice.sequence_number,
            reply.authorization_code, reply.expiry_date.isoformat(),
        )
        return AuthorizationResult(
            authorized=True,
            authorization_code=reply.authorization_code,
            expiry_date=reply.expiry_date,
            verification_image=image,
            remarks=remarks,
        )

    def get_next_number(self, document_kind, timeout: float | None = None, cancel=None) -> int:
        return self.numbering.next_number(
            document_kind, self.credentials.sales_point, timeout=timeout, cancel=cancel
        )

    def synchronize_numbering(self, document_kind, timeout: float | None = None) -> int:
        """Raise the local counter to the Authority's last authorized number."""
        code, _ = get_document_type_code(document_kind)
        auth = self.signer.auth_block(self.credentials, timeout=timeout)
        last = self.client.last_authorized_number(code, self.credentials.sales_point, auth, timeout=timeout)
        return self.numbering.synchronize(document_kind, self.credentials.sales_point, last)


def build_service_from_settings() -> InvoiceAuthorizationService:
    """Wire simulated or live collaborators according to EINVOICE_SIMULATE_AUTHORITY."""
    credentials = load_credentials()
    timeout = getattr(settings, "EINVOICE_REQUEST_TIMEOUT", 30)
    if getattr(settings, "EINVOICE_SIMULATE_AUTHORITY", False):
        logger.info("Using simulated Authority (%s)", credentials.environment.value)
        signer = Signer(SimulatedTicketProvider())
        client = SimulatedAuthorityClient()
    else:
        signer = Signer(LoginTicketProvider())
        client = SoapAuthorityClient(credentials.endpoint, default_timeout=timeout)
    return InvoiceAuthorizationService(
        credentials=credentials,
        signer=signer,
        client=client,
        numbering=NumberingService(),
    )
