"""HMAC-SHA256 verification of remote service responses."""

import hashlib
import hmac
from typing import Mapping

SIGNATURE_HEADER = "X-Cloud-Services-Signature"


class SignatureVerifier:
    """Verifies that a response body was signed with the shared secret."""

    ALG = "sha256"

    def __init__(self, secret: str, header: str = SIGNATURE_HEADER) -> None:
        self._secret = secret.encode()
        self.header = header

    def sign(self, body: bytes) -> str:
        """Return a signature header value of the form ``sha256=<hexdigest>``."""
        mac = hmac.new(self._secret, body, hashlib.sha256)
        return f"{self.ALG}={mac.hexdigest()}"

    def is_valid(self, headers: Mapping[str, str], body: bytes) -> bool:
        """Check the signature header against body using constant-time comparison.

        A bare hex digest without the ``sha256=`` prefix is accepted too.
        """
        signature = headers.get(self.header)
        if not signature:
            return False
        if not signature.startswith(f"{self.ALG}="):
            signature = f"{self.ALG}={signature}"
        return hmac.compare_digest(self.sign(body).encode(), signature.encode())
