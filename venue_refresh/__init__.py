"""venue-refresh: incremental venue content refresh and tiered hours extraction."""

__version__ = "0.1.0"
