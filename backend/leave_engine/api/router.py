from fastapi import APIRouter

from leave_engine.api.balances import balances_router, employee_balance_router
from leave_engine.api.employees import employees_router
from leave_engine.api.entitlements import exceptions_router, preview_router, rules_router
from leave_engine.api.hierarchy import departments_router, hierarchy_router
from leave_engine.api.leave_types import router as leave_types_router
from leave_engine.api.replacement import credits_router, training_router
from leave_engine.api.replacement import rules_router as replacement_rules_router
from leave_engine.api.requests import requests_router

api_router = APIRouter()
api_router.include_router(leave_types_router)
api_router.include_router(rules_router)
api_router.include_router(exceptions_router)
api_router.include_router(preview_router)
api_router.include_router(departments_router)
api_router.include_router(hierarchy_router)
api_router.include_router(employee_balance_router)
api_router.include_router(balances_router)
api_router.include_router(requests_router)
api_router.include_router(replacement_rules_router)
api_router.include_router(credits_router)
api_router.include_router(training_router)
api_router.include_router(employees_router)
