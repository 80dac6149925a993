"""Authenticated principal and request-level RBAC dependencies."""
