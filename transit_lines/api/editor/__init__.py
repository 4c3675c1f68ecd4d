# transit_lines/api/editor/__init__.py
"""Edit sessions and the Map Bridge."""

from transit_lines.api.editor.bridge import MapBridge
from transit_lines.api.editor.workflow import EditorWorkflow
from transit_lines.api.editor.session_manager import EditSessionManager, get_session_manager

__all__ = [
    "MapBridge",
    "EditorWorkflow",
    "EditSessionManager",
    "get_session_manager",
]
