from fastapi import APIRouter

# auth is handled in front of this service (gateway), routes are tenant scoped by path

from .routes_health import router as health_router
from .carriers import router as carriers_router
from .delivery_costs import router as delivery_costs_router


api_v1 = APIRouter()
api_v1.include_router(health_router)
api_v1.include_router(carriers_router)
api_v1.include_router(delivery_costs_router)
