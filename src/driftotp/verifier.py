"""Drift-correcting TOTP verifier - core of driftotp.

The verifier:
- Scans a bounded window of intervals around the current one for a match
- Remembers the offset of the last match as the token's drift correction
- Shifts the next window by that correction, so a drifting token keeps
  verifying without widening the search
- Offers a one-off wide "training" scan to resynchronise long-idle tokens
"""

import logging
import re
from dataclasses import dataclass, replace
from typing import Any

from driftotp.models import DriftState
from driftotp.totp import (
    DEFAULT_DIGITS,
    DEFAULT_PERIOD,
    Clock,
    CodeGenerator,
    HOTPGenerator,
    Secret,
    provisioning_uri,
)

logger = logging.getLogger(__name__)

# Worst case drift for a hardware token is estimated at 1s per day. A token
# idle for 5 years drifts up to 1825s, which 60 steps of 30s cover.
MAX_TIME_DRIFT_TRAINING = 60

_CODE_PATTERN = re.compile(r"[+-]?[0-9]+")


class DriftOTPError(Exception):
    """Base exception for driftotp errors."""
    pass


class InvalidCodeError(DriftOTPError, ValueError):
    """Submitted code is not an integer."""
    pass


def parse_code(code: str) -> int:
    """Parse a submitted code into its integer value.

    Leading zeros are insignificant, so "7", "07" and "000007" are equal.
    Anything other than ASCII digits with an optional sign is rejected.
    """
    if not isinstance(code, str) or not _CODE_PATTERN.fullmatch(code):
        raise InvalidCodeError(f"Code is not numeric: {code!r}")
    return int(code)


@dataclass(frozen=True)
class VerifierConfig:
    """Verifier configuration.

    Intervals are counted in time-steps, not seconds. The defaults accept the
    current and the previous code, like a plain TOTP check.
    """
    look_ahead_interval: int = 0
    look_behind_interval: int = 1
    # Starting drift correction, e.g. restored from a previous run
    time_drift_correction: int = 0

    def __post_init__(self) -> None:
        for name in ("look_ahead_interval", "look_behind_interval", "time_drift_correction"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer, got {value!r}")
        if self.look_ahead_interval < 0:
            raise ValueError(f"look_ahead_interval must be >= 0, got {self.look_ahead_interval}")
        if self.look_behind_interval < 0:
            raise ValueError(f"look_behind_interval must be >= 0, got {self.look_behind_interval}")


class TimeDriftVerifier:
    """TOTP verifier that tracks and corrects a token's clock drift.

    One instance per token. Every verify() or train() reads and may rewrite
    the drift correction without locking; callers verifying the same token
    concurrently must serialise access to the instance themselves.
    """

    def __init__(
        self,
        secret: Secret,
        clock: Clock | None = None,
        config: VerifierConfig | None = None,
        generator: CodeGenerator | None = None,
        **overrides: Any,
    ):
        config = config or VerifierConfig()
        if overrides:
            config = replace(config, **overrides)

        self._secret = secret
        self._clock = clock or Clock()
        self._generator = generator or HOTPGenerator()
        self._config = config
        self._time_drift_correction = config.time_drift_correction

    @classmethod
    def from_state(
        cls,
        secret: Secret,
        state: DriftState,
        clock: Clock | None = None,
        generator: CodeGenerator | None = None,
    ) -> "TimeDriftVerifier":
        """Restore a verifier from a persisted drift state."""
        config = VerifierConfig(
            look_ahead_interval=state.look_ahead_interval,
            look_behind_interval=state.look_behind_interval,
            time_drift_correction=state.time_drift_correction,
        )
        return cls(secret, clock=clock, config=config, generator=generator)

    @property
    def config(self) -> VerifierConfig:
        return self._config

    @property
    def look_ahead_interval(self) -> int:
        return self._config.look_ahead_interval

    @property
    def look_behind_interval(self) -> int:
        return self._config.look_behind_interval

    @property
    def time_drift_correction(self) -> int:
        """Offset, in time-steps, of the most recent successful match."""
        return self._time_drift_correction

    def window(self, train: bool = False) -> range:
        """Offsets the next check will try, in scan order.

        The most-ahead offset comes first, so if two offsets ever produce the
        same code the more-ahead one wins.
        """
        if train:
            upper = MAX_TIME_DRIFT_TRAINING
            lower = -MAX_TIME_DRIFT_TRAINING
        else:
            upper = self.look_ahead_interval + self._time_drift_correction
            lower = -self.look_behind_interval + self._time_drift_correction
        return range(upper, lower - 1, -1)

    def _verify(self, code: str, train: bool) -> bool:
        expected = parse_code(code)
        current_interval = self._clock.current_interval()
        offsets = self.window(train)

        logger.debug(
            f"Scanning offsets {offsets[0]}..{offsets[-1]} "
            f"around interval {current_interval}"
        )

        for offset in offsets:
            candidate = self._generator.generate(self._secret, current_interval + offset)
            if candidate == expected:
                if offset != self._time_drift_correction:
                    logger.info(
                        f"Drift correction changed from {self._time_drift_correction} to {offset}"
                    )
                self._time_drift_correction = offset
                return True

        logger.debug("No matching interval in window")
        return False

    def verify(self, code: str) -> bool:
        """Verify a code within the configured window.

        Args:
            code: The submitted one-time password

        Returns:
            True if the code matches some interval in the window. The drift
            correction is then set to that interval's offset.

        Raises:
            InvalidCodeError: code is not an integer
        """
        return self._verify(code, train=False)

    def train(self, code: str) -> bool:
        """Verify a code within +/- MAX_TIME_DRIFT_TRAINING intervals.

        Used to (re)synchronise a token whose drift may lie far outside the
        configured window, e.g. at enrollment. Same result and update rules
        as verify().
        """
        return self._verify(code, train=True)

    def now(self) -> str:
        """Zero-padded code for the current interval, without drift correction."""
        code = self._generator.generate(self._secret, self._clock.current_interval())
        digits = getattr(self._generator, "digits", None)
        return str(code).zfill(digits) if digits else str(code)

    def uri(self, account: str, issuer: str | None = None) -> str:
        """Generate otpauth:// URI for setting up an authenticator app."""
        return provisioning_uri(
            self._secret,
            account,
            issuer=issuer,
            digits=getattr(self._generator, "digits", DEFAULT_DIGITS),
            period=getattr(self._clock, "period", DEFAULT_PERIOD),
        )

    def state(self) -> DriftState:
        """Snapshot of configuration and drift, for persistence."""
        return DriftState(
            look_ahead_interval=self.look_ahead_interval,
            look_behind_interval=self.look_behind_interval,
            time_drift_correction=self._time_drift_correction,
        )
