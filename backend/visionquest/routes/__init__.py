# backend/visionquest/routes/__init__.py
from .quests import router as quests_router

__all__ = ["quests_router"]
