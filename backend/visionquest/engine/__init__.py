# backend/visionquest/engine/__init__.py
