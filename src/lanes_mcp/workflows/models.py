"""Workflow template metadata."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator


class WorkflowTemplate(BaseModel):
    """A discovered workflow YAML file."""

    name: str = Field(..., description="Workflow name declared in the YAML document.")
    description: str = Field(..., description="Human-friendly summary of the workflow.")
    path: Path = Field(..., description="Absolute path to the YAML file.")
    is_builtin: bool = Field(
        default=False,
        description="Whether the template ships with Lanes rather than the workspace.",
    )

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Workflow name must not be empty")
        return normalized


__all__ = ["WorkflowTemplate"]
