"""Leaveflow: multi-tenant leave request lifecycle and balance engine."""

__version__ = "1.0.0"
