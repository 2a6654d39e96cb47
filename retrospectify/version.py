"""Version information for Retrospectify."""

import os
from functools import lru_cache

# Semantic version - update this when releasing
__version__ = "0.1.0"


@lru_cache
def get_version() -> str:
    """Effective version, overridable at build time via APP_VERSION."""
    return os.getenv("APP_VERSION", __version__)
