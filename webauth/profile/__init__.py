"""
Protected resources gated by the route guard.
"""

from .routes import profile_router

__all__ = ["profile_router"]
