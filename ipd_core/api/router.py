# FILE: ipd_core/api/router.py
from fastapi import APIRouter
from ipd_core.api import (
    routes_ipd_beds,
    routes_ipd_encounters,
)

api_router = APIRouter()

api_router.include_router(routes_ipd_beds.router)
api_router.include_router(routes_ipd_encounters.router)
