"""UI modules - Streamlit app and session state."""
from .state_manager import StateManager

__all__ = ["StateManager"]
