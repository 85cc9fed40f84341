"""
Fleet autoscaling decision engine.

Answers "what should the replica count be now?" for one FleetAutoscaleReview.
Pure function of (FleetState, ScalerConfig): no I/O, no shared state, safe to
call from any number of concurrent requests.

Every request is classified into exactly one mode, first match wins:

    FIXED_OVERRIDE         override enabled and fixedReplicas annotation present
    CAPACITY_COUNTER       replicas > 0 and counter present with capacity > 0
    UTILIZATION_THRESHOLD  replicas > 0
    NO_SIGNAL              nothing safe to compute from (replicas == 0)

Formulas:
    capacity:     base   = clamp(ceil(count / capacity_per_replica))
                  target = clamp(ceil(base * scale_factor))      (headroom on)
    utilization:  f = allocated / replicas
                  f > upper                    → clamp(ceil(replicas * scale_factor))
                  f < lower, replicas > min    → max(ceil(replicas / scale_factor), min)

Whatever the mode, a target above max_replicas (when set) is forced down to it.
"""

import logging
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from .config import ScalerConfig
from .errors import InvalidFixedReplicas
from .models import FleetState

logger = logging.getLogger(__name__)

INT32_MAX = 2 ** 31 - 1
_INTEGER_RE = re.compile(r"^[+-]?[0-9]+$")


class ScalingMode(str, Enum):
    FIXED_OVERRIDE = "fixed_override"
    CAPACITY_COUNTER = "capacity_counter"
    UTILIZATION_THRESHOLD = "utilization_threshold"
    NO_SIGNAL = "no_signal"


@dataclass(frozen=True)
class Decision:
    scale: bool
    replicas: int
    mode: ScalingMode


# ── Classification ────────────────────────────────────────────────────────────

def classify(state: FleetState, config: ScalerConfig) -> ScalingMode:
    """Pick the single scaling mode that applies to this request."""
    if config.fixed_override_enabled and state.fixed_replicas is not None:
        return ScalingMode.FIXED_OVERRIDE
    if state.current_replicas == 0:
        return ScalingMode.NO_SIGNAL
    counter = state.capacity_counter
    if counter is not None and counter.capacity > 0:
        return ScalingMode.CAPACITY_COUNTER
    return ScalingMode.UTILIZATION_THRESHOLD


def parse_fixed_replicas(value) -> int:
    """
    Validate an operator-supplied replica count.

    Accepts a decimal integer (optionally signed) that fits in int32 and is >= 0.
    Raises InvalidFixedReplicas otherwise.
    """
    if isinstance(value, bool):
        raise InvalidFixedReplicas(value, "Must be an integer.")
    if isinstance(value, int):
        replicas = value
    else:
        text = str(value)
        if not _INTEGER_RE.match(text):
            raise InvalidFixedReplicas(value, "Must be an integer.")
        replicas = int(text)
    if replicas < 0:
        raise InvalidFixedReplicas(value, "Must be >= 0.")
    if replicas > INT32_MAX:
        raise InvalidFixedReplicas(value, f"Must be <= {INT32_MAX}.")
    return replicas


# ── Per-mode policies ─────────────────────────────────────────────────────────

def _changed(state: FleetState, target: int) -> Tuple[int, bool]:
    return target, target != state.current_replicas


def _fixed_override(state: FleetState, config: ScalerConfig) -> Tuple[int, bool]:
    return _changed(state, parse_fixed_replicas(state.fixed_replicas))


def _capacity_counter(state: FleetState, config: ScalerConfig) -> Tuple[int, bool]:
    counter = state.capacity_counter
    desired = config.clamp(math.ceil(counter.count / config.capacity_per_replica))
    target = desired
    if config.capacity_headroom:
        target = config.clamp(math.ceil(desired * config.scale_factor))
    logger.debug(
        f"Capacity counter: count={counter.count} capacity={counter.capacity} "
        f"per_replica={config.capacity_per_replica} desired={desired} target={target}"
    )
    return _changed(state, target)


def _utilization_threshold(state: FleetState, config: ScalerConfig) -> Tuple[int, bool]:
    # A crossed threshold always asks the orchestrator to act, even when
    # clamping lands the target on the current count
    current = state.current_replicas
    allocated_fraction = state.allocated_replicas / current

    if allocated_fraction > config.upper_threshold:
        return config.clamp(math.ceil(current * config.scale_factor)), True

    if allocated_fraction < config.lower_threshold and current > config.min_replicas:
        return max(math.ceil(current / config.scale_factor), config.min_replicas), True

    return current, False


def _no_signal(state: FleetState, config: ScalerConfig) -> Tuple[int, bool]:
    return state.current_replicas, False


_POLICIES = {
    ScalingMode.FIXED_OVERRIDE: _fixed_override,
    ScalingMode.CAPACITY_COUNTER: _capacity_counter,
    ScalingMode.UTILIZATION_THRESHOLD: _utilization_threshold,
    ScalingMode.NO_SIGNAL: _no_signal,
}


# ── Public API ────────────────────────────────────────────────────────────────

def decide(state: FleetState, config: ScalerConfig) -> Decision:
    """
    Compute the target replica count for a fleet.

    Raises:
        InvalidFixedReplicas: override applies but the annotation is not a
            non-negative integer. No decision is produced.
    """
    mode = classify(state, config)
    target, scale = _POLICIES[mode](state, config)

    # Safety net for every mode, fixed override included
    if config.bounded and target > config.max_replicas:
        target = config.max_replicas
        scale = True

    logger.info(
        f"Decision uid={state.uid or '-'} mode={mode.value} "
        f"current={state.current_replicas} allocated={state.allocated_replicas} "
        f"target={target} scale={scale}"
    )
    return Decision(scale=scale, replicas=target, mode=mode)
