"""
Vision Quest configuration.

Every setting can be overridden with an environment variable.
"""

import os

# Server settings
HOST = os.getenv("VISIONQUEST_HOST", "127.0.0.1")
PORT = int(os.getenv("VISIONQUEST_PORT", "8000"))
LOG_LEVEL = os.getenv("VISIONQUEST_LOG_LEVEL", "INFO")

# Database settings
DATABASE_URL = os.getenv(
    "VISIONQUEST_DATABASE_URL", "sqlite+aiosqlite:///./visionquest.db"
)

# Progression settings
QUEST_XP = int(os.getenv("VISIONQUEST_QUEST_XP", "50"))  # per completed quest
XP_PER_LEVEL = int(os.getenv("VISIONQUEST_XP_PER_LEVEL", "1000"))  # threshold = level * this

# Undo history kept per user (oldest dropped first)
UNDO_LIMIT = int(os.getenv("VISIONQUEST_UNDO_LIMIT", "100"))

# Content directories
WORLD_DATA_DIR = os.path.join(os.path.dirname(__file__), "world_data")
