"""Aggregate import for all API route modules."""

from . import (
    auth,
    users,
    forms,
    submissions,
    reports,
)

__all__ = [
    "auth",
    "users",
    "forms",
    "submissions",
    "reports",
]
