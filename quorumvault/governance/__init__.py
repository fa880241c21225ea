"""
Transaction governance: records, status engine, action gate, countdowns,
local annotations and view models.

The chain-bound pieces live in submodules imported explicitly:
  - LedgerCache / LedgerSnapshot        (ledger.py)
  - GovernanceSession / ActionResult    (session.py)
"""

from .annotations import IgnoreList, JsonFileStore, KeyValueStore, MemoryStore
from .countdown import Countdown, CountdownTimer, Urgency, format_duration, project_countdown
from .gate import CHAIN_ACTIONS, Action, allowed_actions
from .models import (
    ConfirmationBreakdown,
    ConfirmationRecord,
    ControllerInfo,
    GovernanceParameters,
    Owner,
    OwnerRecord,
    OwnerSet,
    Proposal,
)
from .status import TERMINAL_STATUSES, ProposalStatus, StatusReport, compute_status
from .views import ProposalView, ViewFilter, build_view, build_views, filter_views

__all__ = [
    "Action",
    "CHAIN_ACTIONS",
    "ConfirmationBreakdown",
    "ConfirmationRecord",
    "ControllerInfo",
    "Countdown",
    "CountdownTimer",
    "GovernanceParameters",
    "IgnoreList",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "Owner",
    "OwnerRecord",
    "OwnerSet",
    "Proposal",
    "ProposalStatus",
    "ProposalView",
    "StatusReport",
    "TERMINAL_STATUSES",
    "Urgency",
    "ViewFilter",
    "allowed_actions",
    "build_view",
    "build_views",
    "compute_status",
    "filter_views",
    "format_duration",
    "project_countdown",
]
