"""portfolio_pulse.api — REST API layer (FastAPI)."""

from portfolio_pulse.api.app import create_app

__all__ = ["create_app"]
