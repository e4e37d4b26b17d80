# backend/fitpass/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import payouts, visits

__all__ = ["payouts", "visits"]
