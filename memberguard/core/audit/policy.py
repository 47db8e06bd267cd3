"""Audit policy configuration.

Whether an audit-write failure blocks a state transition is a deployment
choice, so it is configured rather than hard-coded. The policy is loaded
from a YAML file:

    audit:
      required_actions:
        - identity_verification:reject
        - scam_report:reject
      require_for_overrides: true
      record_denied_attempts: true

Actions listed under ``required_actions`` (and every super_admin
override when ``require_for_overrides`` is set) are audited write-ahead:
if the audit record cannot be written the transition does not happen.
Every other action is audited best-effort after the state change, and
the state record stays the source of truth.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional

import yaml


DEFAULT_REQUIRED_ACTIONS: FrozenSet[str] = frozenset([
    "identity_verification:reject",
    "scam_report:reject",
    "financial_period:lock",
    "financial_period:unlock",
])


@dataclass(frozen=True)
class AuditPolicy:
    """Which actions must be audited before they are applied."""

    required_actions: FrozenSet[str] = field(default_factory=lambda: DEFAULT_REQUIRED_ACTIONS)
    require_for_overrides: bool = True
    record_denied_attempts: bool = True

    def is_required(self, permission: str, *, via_override: bool = False) -> bool:
        """Check if ``permission`` must be audited write-ahead."""
        if via_override and self.require_for_overrides:
            return True
        return permission in self.required_actions


def parse_audit_policy(config_dict: Dict[str, Any]) -> AuditPolicy:
    """Parse the ``audit`` section of a policy document.

    Args:
        config_dict: Full policy dictionary

    Returns:
        AuditPolicy instance
    """
    audit = config_dict.get("audit") or {}
    if not isinstance(audit, dict):
        raise TypeError(f"'audit' section must be a mapping, got {type(audit).__name__}")

    required = audit.get("required_actions")
    return AuditPolicy(
        required_actions=(
            DEFAULT_REQUIRED_ACTIONS if required is None
            else frozenset(str(action) for action in required)
        ),
        require_for_overrides=bool(audit.get("require_for_overrides", True)),
        record_denied_attempts=bool(audit.get("record_denied_attempts", True)),
    )


def load_policy_config(config_path: str) -> Dict[str, Any]:
    """Load a policy document from YAML.

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If the file is invalid YAML
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Audit policy file not found: {config_path}")

    with config_file.open("r") as f:
        config = yaml.safe_load(f)

    if config is None:
        config = {}

    if not isinstance(config, dict):
        raise TypeError(
            f"Audit policy root must be a mapping, got {type(config).__name__}"
        )

    return _expand_env_vars(config)


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand environment variables in configuration."""
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        return os.path.expandvars(obj)
    else:
        return obj


def load_audit_policy(config_path: Optional[str] = None) -> AuditPolicy:
    """Load the audit policy, or the defaults when no path is configured."""
    if not config_path:
        return AuditPolicy()
    return parse_audit_policy(load_policy_config(config_path))
