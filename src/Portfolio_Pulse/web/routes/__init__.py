"""FastAPI route modules for Portfolio Pulse.

Re-exports all routers so the application factory can import them:
    from Portfolio_Pulse.web.routes import batch_router, simulation_router
"""

from Portfolio_Pulse.web.routes.batch import router as batch_router
from Portfolio_Pulse.web.routes.simulation import router as simulation_router

__all__ = [
    "batch_router",
    "simulation_router",
]
