"""Same-night hotel search across two travel providers."""

__version__ = "0.1.0"
