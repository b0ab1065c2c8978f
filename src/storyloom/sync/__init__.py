"""Sync package - use cases coordinating state and persistence."""

from storyloom.sync.orchestrator import StoryOrchestrator
from storyloom.sync.tasks import BackgroundTasks

__all__ = ["BackgroundTasks", "StoryOrchestrator"]
