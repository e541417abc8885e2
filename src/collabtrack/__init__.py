"""
Collabtrack: a collaborative project/task tracker backend.

Import the FastAPI application from ``collabtrack.main``.
"""

__version__ = "0.1.0"
