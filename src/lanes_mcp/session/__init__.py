"""Session state, status and workflow snapshot access."""

from .models import (
    TERMINAL_MODES,
    VALID_STATUS_VALUES,
    AgentSessionData,
    AgentSessionStatus,
    WorkflowStatus,
)
from .state import SESSION_ID_PATTERN, SessionStateStore, generate_task_list_id
from .status import WORKFLOW_STATE_FILE, AgentStatusStore, StatusTransitionTracker

__all__ = [
    "AgentSessionData",
    "AgentSessionStatus",
    "AgentStatusStore",
    "SESSION_ID_PATTERN",
    "SessionStateStore",
    "StatusTransitionTracker",
    "TERMINAL_MODES",
    "VALID_STATUS_VALUES",
    "WORKFLOW_STATE_FILE",
    "WorkflowStatus",
    "generate_task_list_id",
]
