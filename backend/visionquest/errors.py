"""Exceptions raised by the quest core for local logic errors."""


class VisionQuestError(Exception):
    """Base class for all Vision Quest errors."""


class NotFoundError(VisionQuestError):
    """A referenced storyline or quest does not exist in memory."""

    def __init__(self, entity: str, entity_id: str | None) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} '{entity_id}' not found")
