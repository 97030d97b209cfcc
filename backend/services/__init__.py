# backend/services/__init__.py
"""
Business services: sanitization, auth, audit, analytics, notifications.
"""
