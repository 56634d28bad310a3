"""
API package initialization.

Router modules:
- strategy: CSP event strategy summaries, strategy chat and volume projections
"""

from fastapi import APIRouter

from csp_strategy.api.strategy import router as strategy_router

api_router = APIRouter()

api_router.include_router(strategy_router, prefix="/csp-events", tags=["strategy"])

__all__ = [
    "api_router",
    "strategy_router",
]
