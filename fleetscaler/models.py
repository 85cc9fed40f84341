"""
Pydantic models for the Agones FleetAutoscaleReview webhook envelope.

The orchestrator POSTs a review with `request` filled in; we echo the request
back unchanged and attach `response`. Field names follow the Agones JSON
(camelCase); unknown fields are preserved so the echo stays faithful.
"""

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ── Fleet status ──────────────────────────────────────────────────────────────

class CounterStatus(BaseModel):
    """Aggregated counter across every replica in the fleet."""
    model_config = ConfigDict(extra="allow")

    count: int = 0
    capacity: int = 0


class FleetStatus(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    replicas: int = Field(0, ge=0)
    ready_replicas: int = Field(0, ge=0, alias="readyReplicas")
    reserved_replicas: int = Field(0, ge=0, alias="reservedReplicas")
    allocated_replicas: int = Field(0, ge=0, alias="allocatedReplicas")
    counters: Optional[dict[str, CounterStatus]] = None
    lists: Optional[dict] = None


# ── Review envelope ───────────────────────────────────────────────────────────

class FleetAutoscaleRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    uid: str = ""
    name: str = ""
    namespace: str = ""
    status: FleetStatus = Field(default_factory=FleetStatus)
    labels: Optional[dict[str, str]] = None
    annotations: Optional[dict[str, str]] = None


class FleetAutoscaleResponse(BaseModel):
    uid: str
    scale: bool
    replicas: int


class FleetAutoscaleReview(BaseModel):
    model_config = ConfigDict(extra="allow")

    request: FleetAutoscaleRequest
    response: Optional[FleetAutoscaleResponse] = None


# ── Engine input ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Counter:
    count: int
    capacity: int


@dataclass(frozen=True)
class FleetState:
    """Everything the decision engine needs from one review request."""
    current_replicas: int
    allocated_replicas: int = 0
    capacity_counter: Optional[Counter] = None
    fixed_replicas: Optional[str] = None
    uid: str = ""

    @classmethod
    def from_request(
        cls,
        request: FleetAutoscaleRequest,
        counter_name: str = "rooms",
        annotation: str = "fixedReplicas",
    ) -> "FleetState":
        status = request.status
        counter = None
        if status.counters and counter_name in status.counters:
            c = status.counters[counter_name]
            counter = Counter(count=c.count, capacity=c.capacity)
        fixed = None
        if request.annotations and annotation in request.annotations:
            fixed = request.annotations[annotation]
        return cls(
            current_replicas=status.replicas,
            allocated_replicas=status.allocated_replicas,
            capacity_counter=counter,
            fixed_replicas=fixed,
            uid=request.uid,
        )
