"""PESEL helpers: birth date decoding, keyed lookup digest and optional encryption at rest.

When ``PESEL_ENC_KEY`` (base64, 32 bytes) is configured the stored column holds
``base64(iv | tag | ciphertext)`` produced with AES-256-GCM; otherwise the
number is stored as-is. Lookups always go through ``pesel_hmac``.
"""
import base64
import hashlib
import hmac
import os
from datetime import date
from typing import Optional

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from app.core.config import settings

GCM_IV_LENGTH = 12
GCM_TAG_LENGTH = 16


def birth_date_from_pesel(pesel: str) -> Optional[date]:
    """Decode the birth date; the month field carries the century offset."""
    if len(pesel) < 6 or not pesel[:6].isdigit():
        return None

    year = int(pesel[0:2])
    month = int(pesel[2:4])
    day = int(pesel[4:6])

    if month > 80:
        year += 1800
        month -= 80
    elif month > 60:
        year += 2200
        month -= 60
    elif month > 40:
        year += 2100
        month -= 40
    elif month > 20:
        year += 2000
        month -= 20
    else:
        year += 1900

    try:
        return date(year, month, day)
    except ValueError:
        return None


def pesel_hmac(pesel: str) -> str:
    key = settings.PESEL_HMAC_KEY
    if not key:
        raise RuntimeError("Missing PESEL HMAC secret")
    return hmac.new(key.encode("utf-8"), pesel.encode("utf-8"), hashlib.sha256).hexdigest()


def pesel_matches(pesel: str, stored_hmac: Optional[str]) -> bool:
    if not stored_hmac:
        return False
    return hmac.compare_digest(pesel_hmac(pesel), stored_hmac)


def _aes_key() -> Optional[bytes]:
    secret = settings.PESEL_ENC_KEY
    if not secret:
        return None
    key = base64.b64decode(secret)
    if len(key) != 32:
        raise RuntimeError(f"Invalid AES key length: {len(key)} bytes (expected 32).")
    return key


def encrypt_pesel(pesel: str) -> str:
    key = _aes_key()
    if key is None:
        return pesel
    iv = os.urandom(GCM_IV_LENGTH)
    # cryptography appends the tag to the ciphertext
    sealed = AESGCM(key).encrypt(iv, pesel.encode("utf-8"), None)
    ciphertext, tag = sealed[:-GCM_TAG_LENGTH], sealed[-GCM_TAG_LENGTH:]
    return base64.b64encode(iv + tag + ciphertext).decode("ascii")


def decrypt_pesel(stored: Optional[str]) -> Optional[str]:
    if not stored:
        return stored
    key = _aes_key()
    if key is None or (len(stored) == 11 and stored.isdigit()):
        return stored
    data = base64.b64decode(stored)
    if len(data) <= GCM_IV_LENGTH + GCM_TAG_LENGTH:
        raise ValueError("Encrypted PESEL payload too short")
    iv = data[:GCM_IV_LENGTH]
    tag = data[GCM_IV_LENGTH:GCM_IV_LENGTH + GCM_TAG_LENGTH]
    ciphertext = data[GCM_IV_LENGTH + GCM_TAG_LENGTH:]
    return AESGCM(key).decrypt(iv, ciphertext + tag, None).decode("utf-8")
