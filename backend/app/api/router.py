from fastapi import APIRouter

from app.api.attendance import attendance_router
from app.api.balances import balances_router
from app.api.policies import policies_router
from app.api.requests import requests_router

api_router = APIRouter()
api_router.include_router(attendance_router)
api_router.include_router(requests_router)
api_router.include_router(balances_router)
api_router.include_router(policies_router)
