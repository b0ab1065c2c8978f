"""Drafts package - private edit copies with debounced autosave."""

from storyloom.drafts.autosave import EditorSession, NodeDraft

__all__ = ["EditorSession", "NodeDraft"]
