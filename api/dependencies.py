"""
FastAPI dependencies.

Settings and the lifecycle engine are resolved per request so tests can swap
them through `app.dependency_overrides`.
"""

from fastapi import Depends

from services.lead_lifecycle_service import LifecycleEngine, create_lifecycle_engine
from services.settings import Settings, load_settings


def get_settings() -> Settings:
    return load_settings()


def get_lifecycle_engine(settings: Settings = Depends(get_settings)) -> LifecycleEngine:
    return create_lifecycle_engine(settings)
