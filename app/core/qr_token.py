"""Signed QR tokens for participant admission.

Token format::

    evt_{event_id[:8]}_prt_{participant_id[:8]}_{12 random hex}.{base64url(hmac_sha256(raw))}

The id prefixes are only hints for support staff. Admission always looks the
participant up by the exact stored token, never by the prefixes, since
prefixes can collide.
"""
import base64
import hashlib
import hmac
import secrets
import uuid
from typing import Union

RANDOM_PART_BYTES = 6  # 12 hex characters
TOKEN_DELIMITER = "."

IdLike = Union[uuid.UUID, str]


class QRTokenError(ValueError):
    pass


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _sign(raw_token: str, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), raw_token.encode("utf-8"), hashlib.sha256).digest()
    return _b64url(digest)


def generate_participant_qr_token(event_id: IdLike, participant_id: IdLike, secret: str) -> str:
    """Structured, signed token binding an event and a participant."""
    if not secret:
        raise QRTokenError("secret cannot be empty")

    random_part = secrets.token_hex(RANDOM_PART_BYTES)
    raw_token = f"evt_{str(event_id)[:8]}_prt_{str(participant_id)[:8]}_{random_part}"
    return f"{raw_token}{TOKEN_DELIMITER}{_sign(raw_token, secret)}"


def verify_qr_token(secret: str, signed_token: str) -> bool:
    """Check that ``signed_token`` was produced with ``secret``."""
    if not secret or not signed_token:
        return False

    raw_token, delimiter, provided_sig = signed_token.rpartition(TOKEN_DELIMITER)
    if not delimiter or not raw_token or not provided_sig:
        return False

    expected_sig = _sign(raw_token, secret)
    return hmac.compare_digest(provided_sig.encode("utf-8"), expected_sig.encode("utf-8"))


def generate_qr_distribution_url(base_url: str, qr_token: str) -> str:
    """Short link for handing a token out: ``{base_url}/qr/{base64url(token)}``.

    Pure encoding, no security role. Returns an empty string when either
    argument is empty.
    """
    if not base_url or not qr_token:
        return ""
    return f"{base_url.rstrip('/')}/qr/{_b64url(qr_token.encode('utf-8'))}"


def decode_qr_distribution_token(encoded: str) -> str:
    """Inverse of the path segment produced by ``generate_qr_distribution_url``."""
    padding = "=" * (-len(encoded) % 4)
    try:
        return base64.urlsafe_b64decode(encoded + padding).decode("utf-8")
    except (ValueError, UnicodeDecodeError) as e:
        raise QRTokenError("malformed distribution token") from e
