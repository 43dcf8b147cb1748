"""
Relay Module
============

Request-driven publication controller.

Components:
    - RequestState: Versioned current-request cell
    - SubscriptionGate: Upstream subscription follows downstream presence
    - PublishScheduler: Rate-capped periodic publish timer
    - RelayController: Orchestrates the above and the crop/decimate transform
"""

from crop_relay.relay.request_state import ActiveRequest, RequestState
from crop_relay.relay.gate import SubscriptionGate
from crop_relay.relay.scheduler import AsyncioTimer, PublishScheduler
from crop_relay.relay.controller import RelayController, RelayMetrics

__all__ = [
    "ActiveRequest",
    "RequestState",
    "SubscriptionGate",
    "AsyncioTimer",
    "PublishScheduler",
    "RelayController",
    "RelayMetrics",
]
