import streamlit as st
from typing import Any, List, Optional

from taskpilot.core.models import CreationReport, SprintSelection, TaskDraft


class StateManager:
    """Manages Streamlit session state variables."""

    @staticmethod
    def init_state():
        """Initialize all session state variables with defaults."""
        defaults = {
            'selection': None,
            'fetch_error': None,
            'tasks': [],
            'editing_index': None,
            'draft_fields': {},
            'edit_fields': {},
            'form_nonce': 0,
            'field_nonce': 0,
            'creation_report': None,
            'show_results': False,
            'templates': [],
            'templates_source': None,
            'template_error': None,
        }

        for key, value in defaults.items():
            if key not in st.session_state:
                st.session_state[key] = value

    @staticmethod
    def get(key: str, default: Any = None) -> Any:
        """Get a value from session state safely."""
        return st.session_state.get(key, default)

    @staticmethod
    def set(key: str, value: Any):
        """Set a value in session state."""
        st.session_state[key] = value

    # --- Sprint selection ---

    @staticmethod
    def set_selection(selection: SprintSelection):
        st.session_state.selection = selection
        st.session_state.fetch_error = None

    @staticmethod
    def clear_selection(error: Optional[str] = None):
        """Drop the fetched stories, keeping the error that caused it (if any)."""
        st.session_state.selection = None
        st.session_state.fetch_error = error

    @staticmethod
    def remove_story(story_id: int):
        selection = st.session_state.get('selection')
        if selection is not None:
            st.session_state.selection = selection.without_story(story_id)

    # --- Task list ---

    @staticmethod
    def tasks() -> List[TaskDraft]:
        return st.session_state.get('tasks', [])

    @staticmethod
    def add_task(task: TaskDraft):
        st.session_state.tasks = StateManager.tasks() + [task]
        st.session_state.draft_fields = {}
        # Fresh widget keys clear the form inputs
        st.session_state.form_nonce += 1

    @staticmethod
    def update_task(index: int, task: TaskDraft):
        tasks = list(StateManager.tasks())
        tasks[index] = task
        st.session_state.tasks = tasks
        st.session_state.editing_index = None
        st.session_state.edit_fields = {}

    @staticmethod
    def duplicate_task(index: int):
        tasks = list(StateManager.tasks())
        original = tasks[index]
        tasks.insert(index + 1, original.model_copy(update={"title": f"{original.title} (Copy)"}, deep=True))
        st.session_state.tasks = tasks

    @staticmethod
    def remove_task(index: int):
        tasks = list(StateManager.tasks())
        del tasks[index]
        st.session_state.tasks = tasks
        if st.session_state.editing_index is not None:
            st.session_state.editing_index = None
            st.session_state.edit_fields = {}

    @staticmethod
    def start_editing(index: int):
        st.session_state.editing_index = index
        st.session_state.edit_fields = dict(StateManager.tasks()[index].custom_fields)
        st.session_state.form_nonce += 1

    @staticmethod
    def cancel_editing():
        st.session_state.editing_index = None
        st.session_state.edit_fields = {}

    @staticmethod
    def replace_tasks(tasks: List[TaskDraft]):
        """Load a template: its tasks replace the current list."""
        st.session_state.tasks = [t.model_copy(deep=True) for t in tasks]
        StateManager.cancel_editing()

    # --- Results ---

    @staticmethod
    def set_report(report: CreationReport):
        st.session_state.creation_report = report
        st.session_state.show_results = True
        if report.succeeded:
            st.session_state.tasks = []
            StateManager.cancel_editing()

    @staticmethod
    def close_report():
        st.session_state.show_results = False

    @staticmethod
    def clear_all_data():
        """Clear all data and reset application state."""
        StateManager.clear_selection()
        st.session_state.tasks = []
        StateManager.cancel_editing()
        st.session_state.creation_report = None
        st.session_state.show_results = False
