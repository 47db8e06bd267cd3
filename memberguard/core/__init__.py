"""Core kernel: principals, permissions, lifecycles and audit."""
