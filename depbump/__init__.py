"""depbump - dependency upgrades for uv projects."""

__version__ = "0.1.0"
