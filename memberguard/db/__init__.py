"""Reference SQLAlchemy persistence for MemberGuard."""
