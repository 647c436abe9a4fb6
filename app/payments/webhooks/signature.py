"""
Transfeera webhook signature verification.

Deliveries carry a ``Transfeera-Signature`` header of the form::

    t=1700000000000,v1=5257a869e7ecebeda32affa62cdca3fa51cad7e77a0e56ff536d0ce8e108d8bd

where ``t`` is the signing time in Unix milliseconds and ``v1`` is the
hex HMAC-SHA256 of ``"{t}.{raw_body}"`` under the webhook's secret. Several
``v1`` values may appear while a secret is being rotated; any match is
accepted.

Verification never raises: malformed input is simply invalid, so the caller
can still record the delivery before rejecting it.

Usage:
    from payments.webhooks.signature import is_within_tolerance, verify

    check = verify(request.body, request.headers.get("Transfeera-Signature"), secret)
    if not check.valid or not is_within_tolerance(check.timestamp_ms, 300):
        ...
"""

from __future__ import annotations

import hashlib
import hmac
import time
from dataclasses import dataclass

SIGNATURE_HEADER = "Transfeera-Signature"
SIGNATURE_SCHEME = "v1"


@dataclass(frozen=True)
class SignatureCheck:
    """
    Result of verifying one delivery.

    Attributes:
        valid: True iff a provided digest matches the recomputed one
        timestamp_ms: Signing time parsed from the header, if any
    """

    valid: bool
    timestamp_ms: int | None = None

    def __bool__(self) -> bool:
        return self.valid


def parse_header(header: str | None) -> tuple[int | None, list[str]]:
    """
    Split a signature header into its timestamp and digests.

    Args:
        header: Raw header value

    Returns:
        (timestamp_ms or None, list of v1 digests)
    """
    timestamp: int | None = None
    digests: list[str] = []
    if not header:
        return timestamp, digests

    for part in header.split(","):
        key, sep, value = part.strip().partition("=")
        if not sep:
            continue
        value = value.strip()
        if key == "t" and value.isdigit():
            timestamp = int(value)
        elif key == SIGNATURE_SCHEME and value:
            digests.append(value)
    return timestamp, digests


def compute_signature(raw_body: bytes, secret: str, timestamp_ms: int) -> str:
    """
    Compute the hex HMAC-SHA256 digest for a body and timestamp.

    Args:
        raw_body: Exact request body bytes
        secret: Shared webhook secret
        timestamp_ms: Signing time in Unix milliseconds

    Returns:
        Lowercase hex digest
    """
    message = f"{timestamp_ms}.".encode() + raw_body
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def build_header(raw_body: bytes, secret: str, timestamp_ms: int | None = None) -> str:
    """
    Build a valid signature header, for simulating deliveries.

    Args:
        raw_body: Exact request body bytes
        secret: Shared webhook secret
        timestamp_ms: Signing time; defaults to now

    Returns:
        Header value ``t=<ms>,v1=<hex>``
    """
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"t={timestamp_ms},{SIGNATURE_SCHEME}={compute_signature(raw_body, secret, timestamp_ms)}"


def verify(raw_body: bytes, header: str | None, secret: str | None) -> SignatureCheck:
    """
    Verify a delivery's signature.

    Args:
        raw_body: Exact request body bytes
        header: ``Transfeera-Signature`` header value
        secret: Shared secret of the webhook config

    Returns:
        SignatureCheck; valid is False for a missing secret, a missing or
        malformed header, or a digest mismatch
    """
    timestamp, digests = parse_header(header)
    if not secret or timestamp is None or not digests:
        return SignatureCheck(valid=False, timestamp_ms=timestamp)

    expected = compute_signature(raw_body, secret, timestamp)
    valid = False
    for digest in digests:
        # compare every candidate so timing does not reveal which one matched
        if hmac.compare_digest(expected.encode("ascii"), digest.encode("utf-8")):
            valid = True
    return SignatureCheck(valid=valid, timestamp_ms=timestamp)


def is_within_tolerance(timestamp_ms: int | None, tolerance_seconds: int, now: float | None = None) -> bool:
    """
    Check that a signature timestamp is close enough to now.

    Args:
        timestamp_ms: Signing time in Unix milliseconds
        tolerance_seconds: Allowed skew in either direction; 0 disables
        now: Current Unix time in seconds (defaults to time.time())

    Returns:
        True if the timestamp is acceptable
    """
    if tolerance_seconds <= 0:
        return True
    if timestamp_ms is None:
        return False
    current_ms = (time.time() if now is None else now) * 1000
    return abs(current_ms - timestamp_ms) <= tolerance_seconds * 1000
