"""FastAPI web layer for Portfolio Pulse.

Re-exports the application factory so consumers can import directly:
    from Portfolio_Pulse.web import create_app
"""

from Portfolio_Pulse.web.app import create_app

__all__ = ["create_app"]
