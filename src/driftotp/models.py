"""Persisted drift state for driftotp."""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class DriftState(BaseModel):
    """Verifier bounds and drift correction, saved between runs.

    Holds no secret material; the secret lives wherever the caller keeps it.
    """
    look_ahead_interval: int = Field(default=0, ge=0, description="Steps searched ahead")
    look_behind_interval: int = Field(default=1, ge=0, description="Steps searched behind")
    time_drift_correction: int = Field(default=0, description="Offset of the last match, in steps")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def load_state(path: Path) -> DriftState | None:
    """Load drift state from a JSON file. Returns None if there is none yet."""
    if not path.exists():
        return None
    state = DriftState.model_validate(json.loads(path.read_text()))
    logger.debug(f"Loaded drift state from {path}")
    return state


def save_state(path: Path, state: DriftState) -> None:
    """Write drift state to a JSON file readable only by the owner."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(state.model_dump_json(indent=2))
    os.chmod(path, 0o600)
    logger.debug(f"Saved drift state to {path}")
