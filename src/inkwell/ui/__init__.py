"""Session orchestration and the events it publishes to the rendering layer."""

from .events import EventBus
from .session_controller import EditorSessionController

__all__ = ["EditorSessionController", "EventBus"]
