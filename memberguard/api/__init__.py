"""FastAPI adapter over the MemberGuard kernel."""
