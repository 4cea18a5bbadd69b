"""Workflow template models and discovery."""

from .loader import WorkflowLoader
from .models import WorkflowTemplate

__all__ = ["WorkflowLoader", "WorkflowTemplate"]
