"""Session management layer."""

from gnomelama.session.session_manager import SessionManager, SessionState, descriptor_for_name

__all__ = [
    "SessionManager",
    "SessionState",
    "descriptor_for_name",
]
