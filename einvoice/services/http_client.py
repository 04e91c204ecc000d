"""
HTTP client for the Authority web services with strict TLS.
No automatic retries: a failed submission is reported to the caller, who decides.
Never uses verify=False.
"""

import logging

import requests

logger = logging.getLogger("einvoice")

DEFAULT_TIMEOUT = 30


def authority_session() -> requests.Session:
    """Session without retry adapters; POST to a SOAP endpoint is not idempotent at HTTP level."""
    session = requests.Session()
    session.headers.update({"User-Agent": "einvoice-authorization/0.1"})
    return session


def authority_request(
    url: str,
    *,
    data: bytes,
    headers: dict | None = None,
    timeout: float | None = DEFAULT_TIMEOUT,
    session: requests.Session | None = None,
) -> requests.Response:
    """
    POST a SOAP envelope to the Authority.
    Raises requests.RequestException on network failure or timeout; HTTP error
    statuses are returned (SOAP faults travel with status 500).
    """
    session = session or authority_session()
    logger.debug("Authority POST %s (timeout=%s)", url, timeout)
    return session.request(
        "POST",
        url,
        data=data,
        headers=headers,
        timeout=timeout or DEFAULT_TIMEOUT,
        verify=True,
    )
