"""Resource lifecycle module for MemberGuard.

One generic engine runs a transition table per resource kind.
"""

from .machine import MachineDefinition, TransitionContext, TransitionRule
from .definitions import (
    CONVERSATION,
    DEFINITIONS,
    FINANCIAL_PERIOD,
    IDENTITY_VERIFICATION,
    JOB_LISTING,
    SCAM_REPORT,
    get_definition,
)
from .engine import LifecycleEngine, OVERRIDE_NAME, TransitionResult
from .entries import EntryResult, PrizeDrawEntries

__all__ = [
    "MachineDefinition",
    "TransitionContext",
    "TransitionRule",
    "CONVERSATION",
    "DEFINITIONS",
    "FINANCIAL_PERIOD",
    "IDENTITY_VERIFICATION",
    "JOB_LISTING",
    "SCAM_REPORT",
    "get_definition",
    "LifecycleEngine",
    "OVERRIDE_NAME",
    "TransitionResult",
    "EntryResult",
    "PrizeDrawEntries",
]
