# backend/interview_scoring/services/signature.py
import hashlib
import hmac
import logging
import time
from typing import Mapping, Optional, Tuple, Union

LOG = logging.getLogger("interview_scoring.signature")

DEFAULT_SIGNATURE_HEADER = "elevenlabs-signature"
DEFAULT_TOLERANCE_SECONDS = 300


def _header_value(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, val in headers.items():
        if key.lower() == lowered:
            return val
    return None


def parse_signature_header(value: str) -> Optional[Tuple[int, str]]:
    """
    Split ``t=<unix-seconds>,v0=<hex>`` into ``(timestamp, signature)``.
    Returns None for anything that does not carry both parts.
    """
    parts = {}
    for chunk in value.split(","):
        key, sep, val = chunk.partition("=")
        if not sep:
            continue
        parts[key.strip()] = val.strip()

    timestamp = parts.get("t")
    signature = parts.get("v0")
    if not timestamp or not signature:
        return None
    try:
        return int(timestamp), signature
    except ValueError:
        return None


def compute_signature(secret: str, timestamp: Union[int, str], raw_body: bytes) -> str:
    signed_payload = f"{timestamp}.".encode("utf-8") + raw_body
    return hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()


def verify_signature(
    headers: Mapping[str, str],
    raw_body: bytes,
    secret: Optional[str],
    now: Optional[float] = None,
    header_name: str = DEFAULT_SIGNATURE_HEADER,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
) -> bool:
    """
    Check that a webhook body was signed by the voice platform and is fresh.

    Never raises: every malformed or missing input is a rejection.
    """
    if not secret:
        LOG.error("Webhook secret is not configured; rejecting event")
        return False

    header = _header_value(headers, header_name)
    if not header:
        LOG.warning("Missing %s header", header_name)
        return False

    parsed = parse_signature_header(header)
    if parsed is None:
        LOG.warning("Invalid signature header format")
        return False
    timestamp, received = parsed

    current = time.time() if now is None else now
    if abs(current - timestamp) > tolerance_seconds:
        LOG.warning("Webhook timestamp outside the %ds window (t=%d now=%d)",
                    tolerance_seconds, timestamp, int(current))
        return False

    expected = compute_signature(secret, timestamp, raw_body)
    if not hmac.compare_digest(expected.encode("ascii"), received.encode("utf-8", "replace")):
        LOG.warning("HMAC signature mismatch")
        return False
    return True
