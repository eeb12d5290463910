"""
API Routes
"""
from attest.api.routes import attest

__all__ = ["attest"]
