"""TOTP building blocks - interval clock, HOTP code generator, secret helpers.

These are the collaborators the drift-correcting verifier is built on:
- Clock maps wall-clock time to a time-step counter
- HOTPGenerator turns (secret, counter) into a numeric code (RFC 4226)
- provisioning_uri builds the otpauth:// URI for authenticator apps
"""

import hmac
import secrets
import struct
import time
from base64 import b32decode, b32encode
from typing import Callable, Protocol
from urllib.parse import quote

DEFAULT_PERIOD = 30
DEFAULT_DIGITS = 6

Secret = bytes | str


class CodeGenerator(Protocol):
    """Anything that maps a secret and an interval number to a numeric code."""

    def generate(self, secret: Secret, interval: int) -> int:
        ...


def generate_secret(length: int = 20) -> bytes:
    """Generate a cryptographically secure random secret."""
    return secrets.token_bytes(length)


def encode_secret(secret: bytes) -> str:
    """Get base32-encoded secret (for QR codes and secret files)."""
    return b32encode(secret).decode().rstrip("=")


def decode_secret(secret: Secret) -> bytes:
    """Decode a base32 secret. Raw bytes are returned as-is."""
    if isinstance(secret, bytes):
        return secret
    # Remove spaces and convert to uppercase for flexibility
    secret_b32 = secret.replace(" ", "").upper()
    # Pad if necessary
    padding = 8 - (len(secret_b32) % 8)
    if padding != 8:
        secret_b32 += "=" * padding
    return b32decode(secret_b32)


class Clock:
    """Fixed-duration time-step clock.

    interval = floor(unix_seconds / period)
    """

    def __init__(self, period: int = DEFAULT_PERIOD, time_func: Callable[[], float] = time.time):
        if period <= 0:
            raise ValueError(f"period must be positive, got {period}")
        self.period = period
        self._time = time_func

    def interval_at(self, timestamp: float) -> int:
        return int(timestamp // self.period)

    def current_interval(self) -> int:
        return self.interval_at(self._time())


class HOTPGenerator:
    """RFC 4226 HOTP code generator.

    Codes are returned as integers; leading zeros are a display concern
    handled by format().
    """

    def __init__(self, digits: int = DEFAULT_DIGITS, algorithm: str = "sha1"):
        if not 1 <= digits <= 10:
            raise ValueError(f"digits must be between 1 and 10, got {digits}")
        self.digits = digits
        self.algorithm = algorithm

    def generate(self, secret: Secret, interval: int) -> int:
        """Generate the code for a counter value."""
        counter_bytes = struct.pack(">Q", interval)
        hmac_hash = hmac.new(decode_secret(secret), counter_bytes, self.algorithm).digest()

        # Dynamic truncation
        offset = hmac_hash[-1] & 0x0F
        truncated = struct.unpack(">I", hmac_hash[offset:offset + 4])[0]
        truncated &= 0x7FFFFFFF

        return truncated % (10 ** self.digits)

    def format(self, code: int) -> str:
        """Zero-pad a code for display."""
        return str(code).zfill(self.digits)


def provisioning_uri(
    secret: Secret,
    account: str,
    issuer: str | None = None,
    digits: int = DEFAULT_DIGITS,
    period: int = DEFAULT_PERIOD,
) -> str:
    """Generate otpauth:// URI for QR code.

    Only the label and secret are always present; issuer, digits and period
    are added when they carry information.
    """
    secret_b32 = secret if isinstance(secret, str) else encode_secret(secret)
    label = quote(account, safe="")
    if issuer:
        label = f"{quote(issuer, safe='')}:{label}"

    uri = f"otpauth://totp/{label}?secret={secret_b32}"
    if issuer:
        uri += f"&issuer={quote(issuer, safe='')}"
    if digits != DEFAULT_DIGITS:
        uri += f"&digits={digits}"
    if period != DEFAULT_PERIOD:
        uri += f"&period={period}"
    return uri
