"""Beginner-friendly overview for this module.

WHAT: FastAPI dependencies for authentication and service wiring.
WHEN: Resolved by FastAPI on every request that declares them.
WHY: Keeps token parsing and service construction out of the route bodies.
HOW: See ``auth.py`` for bearer-token checks and ``services.py`` for the
self-destruct workflow factory.

File: app/deps/__init__.py
"""
