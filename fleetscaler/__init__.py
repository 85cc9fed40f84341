"""
Fleet Autoscaler

Webhook decision service for Agones fleet autoscaling:
  Fixed override    — operator pins the replica count via annotation
  Capacity counter  — size the fleet from an aggregated counter (e.g. rooms)
  Utilization       — scale by scale_factor when allocation crosses thresholds
"""

from .autoscaler import Decision, ScalingMode, classify, decide
from .config import ScalerConfig, load_config
from .errors import ConfigError, InvalidFixedReplicas, InvalidInput
from .models import Counter, FleetState

__all__ = [
    "Decision",
    "ScalingMode",
    "classify",
    "decide",
    "ScalerConfig",
    "load_config",
    "ConfigError",
    "InvalidInput",
    "InvalidFixedReplicas",
    "Counter",
    "FleetState",
]
