"""Cloud sync service for year-planner preferences."""

__version__ = "1.0.0"
