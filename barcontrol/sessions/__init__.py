"""Session finalization package."""

from barcontrol.sessions.finalizer import finalize, preview

__all__ = ["finalize", "preview"]
