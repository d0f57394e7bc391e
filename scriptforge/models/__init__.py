"""
All SQLAlchemy models re-exported for convenient imports.

Usage:
    from scriptforge.models import ScriptVersion
"""

from scriptforge.models.version import ScriptVersion

__all__ = [
    "ScriptVersion",
]
