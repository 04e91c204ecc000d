"""Management command: Check Authority certificate expiry. Run daily via cron."""

import logging

from django.core.management.base import BaseCommand, CommandError

from einvoice.exceptions import SigningError
from einvoice.services.certificate_utils import certificate_days_remaining, load_certificate_bundle
from einvoice.services.credentials import load_credentials

logger = logging.getLogger("einvoice")


class Command(BaseCommand):
    help = "Check the configured Authority certificate. Alert if < 30 days remaining."

    def add_arguments(self, parser):
        parser.add_argument("--days", type=int, default=30, help="Alert threshold in days")

    def handle(self, *args, **options):
        threshold_days = options["days"]
        credentials = load_credentials()
        try:
            certificate, _ = load_certificate_bundle(
                credentials.certificate_path, credentials.certificate_password
            )
        except SigningError as e:
            raise CommandError(f"Certificate could not be loaded: {e}") from e

        valid_till = certificate.not_valid_after_utc
        remaining = certificate_days_remaining(certificate)
        if remaining < 0:
            logger.error("Authority certificate expired on %s", valid_till.isoformat())
            self.stderr.write(f"CERTIFICATE EXPIRED ({valid_till})")
        elif remaining < threshold_days:
            logger.warning("Authority certificate expires in %s days", remaining)
            self.stderr.write(f"Certificate expires in {remaining} days ({valid_till})")
        else:
            self.stdout.write(f"Certificate valid until {valid_till}")
