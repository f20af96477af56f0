"""driftotp - Drift-tolerant TOTP verification."""

from driftotp.models import (
    DriftState,
    load_state,
    save_state,
)
from driftotp.totp import (
    Clock,
    CodeGenerator,
    HOTPGenerator,
    decode_secret,
    encode_secret,
    generate_secret,
    provisioning_uri,
)
from driftotp.verifier import (
    MAX_TIME_DRIFT_TRAINING,
    DriftOTPError,
    InvalidCodeError,
    TimeDriftVerifier,
    VerifierConfig,
    parse_code,
)

__all__ = [
    # Verifier
    "MAX_TIME_DRIFT_TRAINING",
    "DriftOTPError",
    "InvalidCodeError",
    "TimeDriftVerifier",
    "VerifierConfig",
    "parse_code",
    # TOTP primitives
    "Clock",
    "CodeGenerator",
    "HOTPGenerator",
    "decode_secret",
    "encode_secret",
    "generate_secret",
    "provisioning_uri",
    # State
    "DriftState",
    "load_state",
    "save_state",
]

__version__ = "0.1.0"
