"""DevERP: personal project and task tracker with dependency-aware progress."""

from deverp.config import VERSION as __version__

__all__ = ["__version__"]
