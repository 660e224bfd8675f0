import hmac, hashlib
from typing import Optional

from storefront.config import settings


def webhook_secret() -> str:
    return settings.payment_webhook_secret or ""


def sign_payload(body: bytes, secret: Optional[str] = None) -> str:
    key = (secret if secret is not None else webhook_secret()).encode("utf-8")
    return hmac.new(key, body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: Optional[str], secret: Optional[str] = None) -> bool:
    key = secret if secret is not None else webhook_secret()
    if not key or not signature:
        return False
    return hmac.compare_digest(sign_payload(body, key), signature.strip())
