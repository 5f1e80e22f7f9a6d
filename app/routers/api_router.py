from fastapi import APIRouter
from app.routers import payroll, salary_components

# Centralized API router hub
# Routers are aggregated here, and main.py only imports this single hub.
api_router = APIRouter()

api_router.include_router(salary_components.router, tags=["Salary Components"])
api_router.include_router(payroll.router, tags=["Payroll"])
