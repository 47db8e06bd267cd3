"""API routers for MemberGuard."""

from . import auth
from . import resources
from . import conversations
from . import prize_draws

__all__ = [
    "auth",
    "resources",
    "conversations",
    "prize_draws",
]
