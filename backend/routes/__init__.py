# backend/routes/__init__.py
"""
API route handlers organized by domain.
"""

from backend.routes import admin, analytics, auth, contact, cookies, health

__all__ = [
    "admin",
    "analytics",
    "auth",
    "contact",
    "cookies",
    "health",
]
