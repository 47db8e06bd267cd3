"""MemberGuard: authorization kernel and guarded resource lifecycles."""

__version__ = "0.1.0"
