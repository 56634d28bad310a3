"""
FastAPI dependency injection module for the CSP Strategy backend.

Key Dependencies Provided:
- get_settings_dependency: Returns the cached Settings singleton
- SettingsDep: Type alias for injecting Settings into endpoints

Usage:
    @router.post("/csp-events/{event_id}/strategy-summary/refresh")
    async def refresh(event_id: str, settings: SettingsDep):
        summary = await refresh_strategy_summary(event_id, settings=settings)
        ...

In tests, override the dependency:
    app.dependency_overrides[get_settings_dependency] = lambda: mock_settings
"""

from typing import Annotated

from fastapi import Depends

from csp_strategy.core.config import Settings, get_settings


def get_settings_dependency() -> Settings:
    """Return the Settings singleton (thin wrapper so tests can override it)."""
    return get_settings()


SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]
