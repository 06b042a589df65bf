import hashlib
import hmac
from typing import Any, Dict, Optional, Tuple
from jose import jwt
from nutriplan.core.config import settings

def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode a Supabase access token with the project's JWT secret.

    Raises jose.JWTError on a bad signature, expiry or audience.
    """
    return jwt.decode(
        token,
        settings.SUPABASE_JWT_SECRET,
        algorithms=[settings.SUPABASE_JWT_ALGORITHM],
        audience=settings.SUPABASE_JWT_AUDIENCE,
    )

def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()

def parse_signature_header(signature: str) -> Tuple[str, str]:
    """Split an ``x-signature`` header (``ts=...,v1=...``) into (ts, v1)."""
    ts = ""
    v1 = ""
    for part in signature.split(","):
        key, _, value = part.partition("=")
        key = key.strip()
        if key == "ts":
            ts = value.strip()
        elif key == "v1":
            v1 = value.strip()
    return ts, v1

def build_signature_manifest(notification_id: Any, topic: Any, ts: str) -> str:
    return f"id:{notification_id};topic:{topic};ts:{ts};"

def verify_webhook_signature(signature: str, payload: Dict[str, Any], secret: str) -> bool:
    """
    Check a Mercado Pago notification signature.

    The expected value is the hex HMAC-SHA256 of the manifest
    ``id:<id>;topic:<type>;ts:<ts>;`` keyed with the webhook secret.
    """
    ts, v1 = parse_signature_header(signature)
    if not v1:
        return False

    manifest = build_signature_manifest(payload.get("id"), payload.get("type"), ts)
    expected = hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, v1)
