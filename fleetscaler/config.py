"""
Scaling policy configuration.

Loaded once at process start from environment variables (after `.env` is
applied by the app). Every variable is optional; unset variables keep the
compiled-in default below. A variable that is set but cannot be parsed raises
ConfigError so the process exits before it serves traffic. A value that parses
but falls outside its accepted range is ignored with a warning.

Two normalizations run after all fields are read:
  1. lower_threshold < upper_threshold / scale_factor, otherwise an up-scale
     would land the fleet straight in the down-scale band (flapping). When
     violated: lower_threshold = upper_threshold / (scale_factor + 1)
  2. min_replicas <= max_replicas whenever max_replicas is set
"""

import logging
import math
import os
from typing import Callable, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from .errors import ConfigError

logger = logging.getLogger(__name__)

# ── Defaults ──────────────────────────────────────────────────────────────────
DEFAULT_SCALE_FACTOR = 2.0
DEFAULT_UPPER_THRESHOLD = 0.7
DEFAULT_LOWER_THRESHOLD = 0.3
DEFAULT_MIN_REPLICAS = 2
DEFAULT_MAX_REPLICAS = 0           # 0 = unbounded
DEFAULT_CAPACITY_PER_REPLICA = 5.0
DEFAULT_CAPACITY_COUNTER = "rooms"
DEFAULT_FIXED_REPLICAS_ANNOTATION = "fixedReplicas"

MIN_UPPER_THRESHOLD = 0.1

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


class ScalerConfig(BaseModel):
    """Immutable policy snapshot handed to the decision engine."""

    model_config = ConfigDict(frozen=True)

    scale_factor: float = DEFAULT_SCALE_FACTOR
    upper_threshold: float = DEFAULT_UPPER_THRESHOLD
    lower_threshold: float = DEFAULT_LOWER_THRESHOLD
    min_replicas: int = DEFAULT_MIN_REPLICAS
    max_replicas: int = DEFAULT_MAX_REPLICAS
    fixed_override_enabled: bool = False

    # Capacity-counter policy
    capacity_per_replica: float = DEFAULT_CAPACITY_PER_REPLICA
    capacity_headroom: bool = True
    capacity_counter: str = DEFAULT_CAPACITY_COUNTER
    fixed_replicas_annotation: str = DEFAULT_FIXED_REPLICAS_ANNOTATION

    @property
    def bounded(self) -> bool:
        return self.max_replicas > 0

    def clamp(self, replicas: int) -> int:
        """Clamp a replica count into [min_replicas, max_replicas or +inf]."""
        if replicas < self.min_replicas:
            replicas = self.min_replicas
        if self.bounded and replicas > self.max_replicas:
            replicas = self.max_replicas
        return replicas


# ── Parsers ───────────────────────────────────────────────────────────────────

def _parse_float(name: str, raw: str) -> float:
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigError(name, raw, str(e)) from e
    if not math.isfinite(value):
        raise ConfigError(name, raw, "value must be finite")
    return value


def _parse_int(name: str, raw: str) -> int:
    try:
        value = int(raw.strip(), 10)
    except ValueError as e:
        raise ConfigError(name, raw, str(e)) from e
    # Replica counts travel as int32 on the wire
    if not -(2 ** 31) <= value < 2 ** 31:
        raise ConfigError(name, raw, "value out of int32 range")
    return value


def _parse_bool(name: str, raw: str) -> bool:
    s = raw.strip().lower()
    if s in _TRUE_VALUES:
        return True
    if s in _FALSE_VALUES:
        return False
    raise ConfigError(name, raw, f"expected one of {_TRUE_VALUES + _FALSE_VALUES}")


def _read(
    environ: Mapping[str, str],
    name: str,
    parse: Callable[[str, str], object],
) -> Optional[object]:
    raw = environ.get(name, "")
    if raw == "":
        return None
    return parse(name, raw)


# ── Loader ────────────────────────────────────────────────────────────────────

def load_config(environ: Optional[Mapping[str, str]] = None) -> ScalerConfig:
    """
    Build a ScalerConfig from environment variables.

    Recognized variables:
        SCALE_FACTOR               float, accepted when > 1
        REPLICA_UPSCALE_TRIGGER    float, accepted when in (0.1, 1]
        REPLICA_DOWNSCALE_TRIGGER  float, accepted when < upper / scale_factor
        MIN_REPLICAS_COUNT         int, accepted when >= 0
        MAX_REPLICAS_COUNT         int, accepted when >= 0 (0 = unbounded)
        FIXED_REPLICAS             bool
        CAPACITY_PER_REPLICA       float, accepted when > 0
        CAPACITY_HEADROOM          bool
        CAPACITY_COUNTER_NAME      str
        FIXED_REPLICAS_ANNOTATION  str

    Raises:
        ConfigError: a variable is set but malformed.
    """
    if environ is None:
        environ = os.environ

    scale_factor = DEFAULT_SCALE_FACTOR
    upper = DEFAULT_UPPER_THRESHOLD
    lower = DEFAULT_LOWER_THRESHOLD
    min_replicas = DEFAULT_MIN_REPLICAS
    max_replicas = DEFAULT_MAX_REPLICAS
    fixed_override = False
    capacity_per_replica = DEFAULT_CAPACITY_PER_REPLICA
    capacity_headroom = True

    value = _read(environ, "SCALE_FACTOR", _parse_float)
    if value is not None:
        if value > 1:
            scale_factor = value
        else:
            logger.warning(f"Ignoring SCALE_FACTOR={value}: must be > 1")

    value = _read(environ, "REPLICA_UPSCALE_TRIGGER", _parse_float)
    if value is not None:
        if MIN_UPPER_THRESHOLD < value <= 1:
            upper = value
        else:
            logger.warning(f"Ignoring REPLICA_UPSCALE_TRIGGER={value}: must be in ({MIN_UPPER_THRESHOLD}, 1]")

    value = _read(environ, "REPLICA_DOWNSCALE_TRIGGER", _parse_float)
    if value is not None:
        if 0 <= value < upper / scale_factor:
            lower = value
        else:
            logger.warning(
                f"Ignoring REPLICA_DOWNSCALE_TRIGGER={value}: must be in [0, {upper / scale_factor:.4f})"
            )

    value = _read(environ, "MIN_REPLICAS_COUNT", _parse_int)
    if value is not None:
        if value >= 0:
            min_replicas = value
        else:
            logger.warning(f"Ignoring MIN_REPLICAS_COUNT={value}: must be >= 0")

    value = _read(environ, "MAX_REPLICAS_COUNT", _parse_int)
    if value is not None:
        if value >= 0:
            max_replicas = value
        else:
            logger.warning(f"Ignoring MAX_REPLICAS_COUNT={value}: must be >= 0")

    value = _read(environ, "FIXED_REPLICAS", _parse_bool)
    if value is not None:
        fixed_override = value
        logger.info(f"FIXED_REPLICAS override is {'enabled' if fixed_override else 'disabled'}")

    value = _read(environ, "CAPACITY_PER_REPLICA", _parse_float)
    if value is not None:
        if value > 0:
            capacity_per_replica = value
        else:
            logger.warning(f"Ignoring CAPACITY_PER_REPLICA={value}: must be > 0")

    value = _read(environ, "CAPACITY_HEADROOM", _parse_bool)
    if value is not None:
        capacity_headroom = value

    # Anti-flap: after scaling up by scale_factor the allocated fraction drops to
    # upper / scale_factor at most, which must stay above the down-scale trigger
    if lower >= upper / scale_factor:
        lower = upper / (scale_factor + 1)
        logger.info(f"Adjusted downscale trigger to {lower:.4f} to avoid flapping")

    if max_replicas > 0 and min_replicas > max_replicas:
        logger.info(
            f"MIN_REPLICAS_COUNT exceeds MAX_REPLICAS_COUNT; adjusting min to max "
            f"(min={min_replicas}, max={max_replicas})"
        )
        min_replicas = max_replicas

    return ScalerConfig(
        scale_factor=scale_factor,
        upper_threshold=upper,
        lower_threshold=lower,
        min_replicas=min_replicas,
        max_replicas=max_replicas,
        fixed_override_enabled=fixed_override,
        capacity_per_replica=capacity_per_replica,
        capacity_headroom=capacity_headroom,
        capacity_counter=environ.get("CAPACITY_COUNTER_NAME") or DEFAULT_CAPACITY_COUNTER,
        fixed_replicas_annotation=environ.get("FIXED_REPLICAS_ANNOTATION") or DEFAULT_FIXED_REPLICAS_ANNOTATION,
    )
