import pytest

from fleetscaler.autoscaler import ScalingMode, classify, decide, parse_fixed_replicas
from fleetscaler.config import ScalerConfig, load_config
from fleetscaler.errors import InvalidFixedReplicas, InvalidInput
from fleetscaler.models import Counter, FleetState


def make_state(replicas, allocated=0, rooms=None, fixed=None, uid="uid-1"):
    counter = Counter(count=rooms[0], capacity=rooms[1]) if rooms is not None else None
    return FleetState(
        current_replicas=replicas,
        allocated_replicas=allocated,
        capacity_counter=counter,
        fixed_replicas=fixed,
        uid=uid,
    )


def make_config(**kwargs):
    return ScalerConfig(**kwargs)


# Scenario A: fraction 0.8 > 0.7 doubles the fleet.
def test_scale_up_above_upper_threshold():
    config = make_config(upper_threshold=0.7, scale_factor=2.0)
    decision = decide(make_state(10, 8), config)
    assert decision.scale is True
    assert decision.replicas == 20
    assert decision.mode == ScalingMode.UTILIZATION_THRESHOLD


# Scenario B: fraction 0.2 < 0.3 halves the fleet.
def test_scale_down_below_lower_threshold():
    config = make_config(lower_threshold=0.3, min_replicas=2, scale_factor=2.0)
    decision = decide(make_state(10, 2), config)
    assert decision.scale is True
    assert decision.replicas == 5


# Scenario C: raw up-scale target 8 is clamped to max_replicas=6.
def test_scale_up_clamped_to_max():
    config = make_config(max_replicas=6, scale_factor=2.0)
    decision = decide(make_state(4, 3), config)
    assert decision.scale is True
    assert decision.replicas == 6


# Scenario D: a negative override is rejected, no decision produced.
def test_negative_fixed_replicas_rejected():
    config = make_config(fixed_override_enabled=True)
    with pytest.raises(InvalidFixedReplicas):
        decide(make_state(10, 5, fixed="-1"), config)


# Scenario E: 50 rooms at 5 per replica with scale_factor 1 needs exactly 10.
def test_capacity_counter_matching_fleet_does_not_scale():
    config = make_config(scale_factor=1.0, capacity_per_replica=5.0)
    decision = decide(make_state(10, 10, rooms=(50, 100)), config)
    assert decision.mode == ScalingMode.CAPACITY_COUNTER
    assert decision.scale is False
    assert decision.replicas == 10


def test_no_change_between_thresholds():
    config = make_config(lower_threshold=0.3, upper_threshold=0.7)
    decision = decide(make_state(10, 5), config)
    assert decision.scale is False
    assert decision.replicas == 10


def test_exact_thresholds_do_not_scale():
    config = make_config(lower_threshold=0.3, upper_threshold=0.7, min_replicas=1)
    assert decide(make_state(10, 7), config).scale is False
    assert decide(make_state(10, 3), config).scale is False


def test_no_scale_down_at_min_replicas():
    config = make_config(min_replicas=4)
    decision = decide(make_state(4, 0), config)
    assert decision.scale is False
    assert decision.replicas == 4


def test_scale_down_never_below_min_replicas():
    config = make_config(min_replicas=4, scale_factor=3.0, lower_threshold=0.2, upper_threshold=0.7)
    decision = decide(make_state(6, 0), config)
    assert decision.scale is True
    assert decision.replicas == 4


def test_scale_down_rounds_up():
    config = make_config(min_replicas=1, scale_factor=2.0)
    assert decide(make_state(5, 0), config).replicas == 3


def test_zero_replicas_is_no_signal():
    config = make_config()
    decision = decide(make_state(0, 0, rooms=(40, 100)), config)
    assert decision.mode == ScalingMode.NO_SIGNAL
    assert decision.scale is False
    assert decision.replicas == 0


def test_zero_replicas_with_override_still_scales():
    config = make_config(fixed_override_enabled=True)
    decision = decide(make_state(0, 0, fixed="3"), config)
    assert decision.mode == ScalingMode.FIXED_OVERRIDE
    assert decision.scale is True
    assert decision.replicas == 3


# Override wins even when capacity and utilization would both scale.
def test_fixed_override_takes_precedence():
    config = make_config(fixed_override_enabled=True)
    decision = decide(make_state(10, 10, rooms=(500, 1000), fixed="7"), config)
    assert decision.mode == ScalingMode.FIXED_OVERRIDE
    assert decision.replicas == 7
    assert decision.scale is True


def test_fixed_override_equal_to_current_does_not_scale():
    config = make_config(fixed_override_enabled=True)
    decision = decide(make_state(7, 7, fixed="7"), config)
    assert decision.scale is False
    assert decision.replicas == 7


def test_fixed_override_ignored_when_disabled():
    config = make_config(fixed_override_enabled=False)
    decision = decide(make_state(10, 8, fixed="-1"), config)
    assert decision.mode == ScalingMode.UTILIZATION_THRESHOLD
    assert decision.replicas == 20


def test_override_enabled_without_annotation_falls_through():
    config = make_config(fixed_override_enabled=True)
    assert classify(make_state(10, 8), config) == ScalingMode.UTILIZATION_THRESHOLD


def test_fixed_override_clamped_to_max():
    config = make_config(fixed_override_enabled=True, max_replicas=5)
    decision = decide(make_state(5, 0, fixed="12"), config)
    assert decision.replicas == 5
    assert decision.scale is True


def test_fixed_override_may_go_below_min():
    config = make_config(fixed_override_enabled=True, min_replicas=2)
    decision = decide(make_state(4, 0, fixed="0"), config)
    assert decision.replicas == 0
    assert decision.scale is True


@pytest.mark.parametrize("value", ["abc", "", "1.5", " 3", "3 ", "1_000", "0x10", "2147483648"])
def test_malformed_fixed_replicas_rejected(value):
    config = make_config(fixed_override_enabled=True)
    with pytest.raises(InvalidInput):
        decide(make_state(4, 0, fixed=value), config)


def test_parse_fixed_replicas_accepts_signed_zero_and_plus():
    assert parse_fixed_replicas("+4") == 4
    assert parse_fixed_replicas("-0") == 0
    assert parse_fixed_replicas(9) == 9


# Capacity counter wins over utilization, even with a fleet fully allocated.
def test_capacity_counter_takes_precedence_over_threshold():
    config = make_config(scale_factor=2.0, capacity_per_replica=5.0, min_replicas=1)
    decision = decide(make_state(10, 10, rooms=(12, 50)), config)
    # ceil(12 / 5) = 3, headroom 3 * 2 = 6
    assert decision.mode == ScalingMode.CAPACITY_COUNTER
    assert decision.replicas == 6
    assert decision.scale is True


def test_capacity_counter_without_headroom():
    config = make_config(scale_factor=2.0, capacity_per_replica=5.0, capacity_headroom=False, min_replicas=1)
    decision = decide(make_state(10, 10, rooms=(12, 50)), config)
    assert decision.replicas == 3


def test_capacity_counter_clamped_to_bounds():
    config = make_config(scale_factor=2.0, min_replicas=4, max_replicas=8)
    assert decide(make_state(6, 0, rooms=(0, 30)), config).replicas == 8  # min 4 * 2
    assert decide(make_state(6, 0, rooms=(400, 500)), config).replicas == 8
    config = make_config(scale_factor=2.0, min_replicas=4, max_replicas=0, capacity_headroom=False)
    assert decide(make_state(6, 0, rooms=(0, 30)), config).replicas == 4


# A counter with zero capacity carries no signal: fall back to utilization.
def test_capacity_zero_falls_through_to_threshold():
    config = make_config()
    decision = decide(make_state(10, 8, rooms=(50, 0)), config)
    assert decision.mode == ScalingMode.UTILIZATION_THRESHOLD
    assert decision.replicas == 20


def test_final_clamp_when_fleet_above_max():
    config = make_config(max_replicas=6)
    decision = decide(make_state(10, 5), config)
    assert decision.replicas == 6
    assert decision.scale is True


# A crossed upper threshold still reports scale when the fleet is already at max.
def test_scale_up_at_max_still_flags_scale():
    config = make_config(max_replicas=6)
    decision = decide(make_state(6, 6), config)
    assert decision.replicas == 6
    assert decision.scale is True


# ceil(1 / 1.5) == 1: the down-scale fires without changing the count.
def test_scale_down_without_change_still_flags_scale():
    config = make_config(min_replicas=0, scale_factor=1.5, lower_threshold=0.3)
    decision = decide(make_state(1, 0), config)
    assert decision.replicas == 1
    assert decision.scale is True


def test_max_never_exceeded_and_min_respected():
    config = make_config(min_replicas=3, max_replicas=7, scale_factor=2.0)
    for replicas in range(0, 15):
        for allocated in range(0, replicas + 1):
            for rooms in (None, (allocated * 3, replicas * 5)):
                decision = decide(make_state(replicas, allocated, rooms=rooms), config)
                assert decision.replicas <= 7
                if decision.scale and decision.mode in (
                    ScalingMode.CAPACITY_COUNTER,
                    ScalingMode.UTILIZATION_THRESHOLD,
                ):
                    assert decision.replicas >= 3


def test_scale_up_not_undone_by_next_poll():
    config = load_config({"SCALE_FACTOR": "2", "REPLICA_UPSCALE_TRIGGER": "0.7", "REPLICA_DOWNSCALE_TRIGGER": "0.5"})
    for replicas in range(1, 40):
        for allocated in range(0, replicas + 1):
            first = decide(make_state(replicas, allocated), config)
            if not (first.scale and first.replicas > replicas):
                continue
            second = decide(make_state(first.replicas, allocated), config)
            assert second.replicas >= first.replicas


def test_decide_is_pure():
    config = make_config()
    state = make_state(10, 8)
    assert decide(state, config) == decide(state, config)
