"""Draft review (accept, edit, redo) between capture and submission."""

from .workflow import DraftReviewWorkflow

__all__ = ['DraftReviewWorkflow']
