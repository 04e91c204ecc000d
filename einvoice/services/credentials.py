"""
Authority credentials from Django settings. Read once at startup.
"""

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from einvoice.domain import AuthorityCredentials, Environment

ENDPOINTS = {
    Environment.TESTING: {
        "endpoint": "https://wswhomo.afip.gov.ar/wsfev1/service.asmx",
        "auth_endpoint": "https://wsaahomo.afip.gov.ar/ws/services/LoginCms",
    },
    Environment.PRODUCTION: {
        "endpoint": "https://servicios1.afip.gov.ar/wsfev1/service.asmx",
        "auth_endpoint": "https://wsaa.afip.gov.ar/ws/services/LoginCms",
    },
}


def load_credentials() -> AuthorityCredentials:
    """
    Build AuthorityCredentials from EINVOICE_* settings.
    Endpoints default to the ones of the configured environment.
    """
    env_value = str(getattr(settings, "EINVOICE_ENVIRONMENT", "testing") or "testing").lower()
    try:
        environment = Environment(env_value)
    except ValueError as e:
        raise ImproperlyConfigured(
            f"EINVOICE_ENVIRONMENT must be 'testing' or 'production' (got {env_value!r})"
        ) from e

    tax_id = str(getattr(settings, "EINVOICE_TAX_ID", "") or "").strip()
    if not tax_id:
        raise ImproperlyConfigured("EINVOICE_TAX_ID must be set")

    try:
        sales_point = int(getattr(settings, "EINVOICE_SALES_POINT", 0) or 0)
    except (TypeError, ValueError) as e:
        raise ImproperlyConfigured("EINVOICE_SALES_POINT must be an integer") from e
    if sales_point <= 0:
        raise ImproperlyConfigured("EINVOICE_SALES_POINT must be a positive integer")

    defaults = ENDPOINTS[environment]
    return AuthorityCredentials(
        tax_id=tax_id,
        sales_point=sales_point,
        certificate_path=getattr(settings, "EINVOICE_CERT_PATH", "") or "",
        certificate_password=getattr(settings, "EINVOICE_CERT_PASSWORD", "") or "",
        endpoint=getattr(settings, "EINVOICE_ENDPOINT", "") or defaults["endpoint"],
        auth_endpoint=getattr(settings, "EINVOICE_AUTH_ENDPOINT", "") or defaults["auth_endpoint"],
        environment=environment,
        service_name=getattr(settings, "EINVOICE_SERVICE_NAME", "") or "wsfe",
    )
