"""
Invoicerr Backend — One-Time Codes
====================================

What:  Numeric one-time codes for quote signatures and destructive actions.
How:   Codes are drawn with `secrets`; only their SHA-256 digest is kept.
       Users may type them with separators ("1234-5678"); dashes and spaces
       are dropped before comparing.
"""

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta
from typing import Optional

from app.utils.dates import ensure_aware, utcnow

OTP_LENGTH = 8
OTP_TTL = timedelta(minutes=10)


def generate_otp(length: int = OTP_LENGTH) -> str:
    return "".join(secrets.choice("0123456789") for _ in range(length))


def normalize_otp(code: Optional[str]) -> str:
    return (code or "").replace("-", "").replace(" ", "").strip()


def hash_otp(code: str) -> str:
    return hashlib.sha256(normalize_otp(code).encode("utf-8")).hexdigest()


def otp_matches(code: Optional[str], digest: Optional[str]) -> bool:
    if not digest or not normalize_otp(code):
        return False
    return hmac.compare_digest(hash_otp(code), digest)


def otp_expiry(now: Optional[datetime] = None) -> datetime:
    return (now or utcnow()) + OTP_TTL


def otp_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    return expires_at is None or ensure_aware(expires_at) <= (now or utcnow())
