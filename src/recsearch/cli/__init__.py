"""
recsearch CLI Module.
"""

from .app import app, run

__all__ = ["app", "run"]
