"""
Signature engine for the Authority login ticket request (ECC/RSA).
Produces a DER CMS SignedData (SHA-256, content attached).
"""

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.serialization import pkcs7


class SignatureEngine:
    """Signature engine with automatic algorithm detection."""

    def __init__(self, certificate, private_key):
        self.certificate = certificate
        self.private_key = private_key

    def detect_algorithm(self) -> str:
        pub = self.certificate.public_key()
        if isinstance(pub, ec.EllipticCurvePublicKey):
            return "ECC"
        if isinstance(pub, rsa.RSAPublicKey):
            return "RSA"
        raise ValueError("Unsupported key type")

    def sign_cms(self, data: bytes) -> bytes:
        """CMS SignedData in DER with the signed content embedded (not detached)."""
        self.detect_algorithm()
        return (
            pkcs7.PKCS7SignatureBuilder()
            .set_data(data)
            .add_signer(self.certificate, self.private_key, hashes.SHA256())
            .sign(serialization.Encoding.DER, [])
        )
