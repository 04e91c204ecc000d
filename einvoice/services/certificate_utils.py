"""
Certificate utilities for the Authority login ticket flow.
Loads the issuer's X.509 certificate and private key from PKCS#12 or PEM.
Never logs key or password material.
"""

import re
from datetime import datetime, timezone
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from einvoice.exceptions import SigningError

PKCS12_SUFFIXES = (".p12", ".pfx")


def _pem_block(data: bytes, label_suffix: bytes) -> bytes | None:
    """First PEM block whose label ends with label_suffix (e.g. "EC PRIVATE KEY")."""
    match = re.search(
        rb"-----BEGIN ([A-Z ]*" + label_suffix + rb")-----.+?-----END \1-----",
        data,
        re.DOTALL,
    )
    return match.group(0) if match else None


def _password_bytes(password: str | bytes | None) -> bytes | None:
    if not password:
        return None
    return password.encode() if isinstance(password, str) else password


def load_certificate_bundle(path: str, password: str | bytes | None = None):
    """
    Load (certificate, private_key) from a PKCS#12 file, or from a PEM file
    holding both the certificate and the private key.

    Raises:
        SigningError: If the file is missing, unreadable or incomplete.
    """
    if not path:
        raise SigningError("Certificate path is not configured")
    cert_file = Path(path)
    if not cert_file.is_file():
        raise SigningError(f"Certificate file not found: {cert_file.name}")

    data = cert_file.read_bytes()
    pw = _password_bytes(password)
    try:
        if cert_file.suffix.lower() in PKCS12_SUFFIXES:
            private_key, certificate, _ = pkcs12.load_key_and_certificates(data, pw)
        else:
            cert_block = _pem_block(data, b"CERTIFICATE")
            key_block = _pem_block(data, b"PRIVATE KEY")
            if cert_block is None or key_block is None:
                raise SigningError(
                    "PEM certificate material must contain a certificate and its private key"
                )
            certificate = x509.load_pem_x509_certificate(cert_block)
            private_key = serialization.load_pem_private_key(key_block, password=pw)
    except (ValueError, TypeError) as e:
        raise SigningError(f"Invalid certificate material: {e}") from e

    if certificate is None or private_key is None:
        raise SigningError("Certificate material must contain a certificate and its private key")
    return certificate, private_key


def ensure_certificate_valid(certificate, now: datetime | None = None) -> None:
    """Raise SigningError when the certificate is not yet valid or expired."""
    now = now or datetime.now(timezone.utc)
    if now < certificate.not_valid_before_utc:
        raise SigningError(
            f"Certificate not valid before {certificate.not_valid_before_utc.isoformat()}"
        )
    if now > certificate.not_valid_after_utc:
        raise SigningError(
            f"Certificate expired on {certificate.not_valid_after_utc.isoformat()}"
        )


def certificate_days_remaining(certificate, now: datetime | None = None) -> int:
    now = now or datetime.now(timezone.utc)
    return (certificate.not_valid_after_utc - now).days
