"""portfolio-pulse: normalized, cached market data for portfolio tracking."""

__version__ = "0.1.0"
