# backend/visionquest/models.py
import uuid
from datetime import datetime

from sqlalchemy import (Boolean, CheckConstraint, DateTime, ForeignKey,
                        Integer, MetaData, String, UniqueConstraint, func)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Naming convention for constraints (required for batch migrations)
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}

ITEM_RARITIES = ("common", "rare", "epic", "legendary")


def new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=convention)


class Storyline(Base):
    """A top-level goal owned by one user."""
    __tablename__ = "storylines"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class Quest(Base):
    """
    A task node. Nesting is expressed through parent_id; rows with a null
    parent_id are the roots of their storyline's forest.
    """
    __tablename__ = "quests"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    storyline_id: Mapped[str] = mapped_column(
        String, ForeignKey("storylines.id", ondelete="CASCADE"), nullable=False, index=True
    )
    parent_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("quests.id", ondelete="CASCADE"), nullable=True
    )
    title: Mapped[str] = mapped_column(String, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="0")

    # Sibling order; added by a later migration so older databases may lack it
    position: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class UserProgress(Base):
    """Experience and level, one row per user."""
    __tablename__ = "user_progress"

    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    xp: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    level: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")


class Item(Base):
    """Static catalog entry. Seeded from YAML, never written by the engine."""
    __tablename__ = "items"
    __table_args__ = (
        CheckConstraint(
            "rarity IN (" + ", ".join(f"'{r}'" for r in ITEM_RARITIES) + ")", name="rarity"
        ),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)  # e.g., "item_moonstone"
    name: Mapped[str] = mapped_column(String, nullable=False)
    rarity: Mapped[str] = mapped_column(String, nullable=False, server_default="common")
    image_ref: Mapped[str | None] = mapped_column(String, nullable=True)


class InventorySlot(Base):
    """One stack of a catalog item held by a user."""
    __tablename__ = "inventory"
    __table_args__ = (UniqueConstraint("user_id", "item_id"),)

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    item_id: Mapped[str] = mapped_column(String, ForeignKey("items.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")
