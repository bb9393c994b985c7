"""Vision Quest - quest trees, progression and rewards for personal goals."""

__version__ = "0.1.0"
