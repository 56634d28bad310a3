"""
Core infrastructure package for the CSP Strategy backend.

Modules:
    - config: pydantic-settings configuration (get_settings)
    - database: asyncpg pool lifecycle and query helpers
    - dependencies: FastAPI dependency injection wrappers
    - exceptions: Pipeline error hierarchy
"""

from csp_strategy.core.config import Settings, get_settings
from csp_strategy.core.database import init_db, close_db, get_db_pool
from csp_strategy.core.dependencies import (
    get_settings_dependency,
    SettingsDep,
)
from csp_strategy.core.exceptions import (
    StrategyEngineError,
    InputError,
    DocumentNotFoundError,
    NarrativeServiceError,
    PersistenceError,
)

__all__ = [
    # Configuration management
    'Settings',
    'get_settings',
    # Database pool lifecycle
    'init_db',
    'close_db',
    'get_db_pool',
    # FastAPI dependency injection
    'get_settings_dependency',
    'SettingsDep',
    # Errors
    'StrategyEngineError',
    'InputError',
    'DocumentNotFoundError',
    'NarrativeServiceError',
    'PersistenceError',
]
