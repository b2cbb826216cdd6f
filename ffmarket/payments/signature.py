import hashlib
import hmac
from typing import Optional

SIGNATURE_HEADER = "X-Zini-Signature"


def sign_payload(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(secret: str, body: bytes, signature: Optional[str]) -> bool:
    """Constant-time check of a hex HMAC-SHA256 over the raw request body."""
    if not secret or not signature:
        return False
    sig = signature.strip()
    if sig.lower().startswith("sha256="):
        sig = sig[len("sha256="):]
    return hmac.compare_digest(sign_payload(secret, body), sig.lower())
