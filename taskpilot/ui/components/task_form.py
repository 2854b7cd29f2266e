import streamlit as st
from typing import Any, Dict, Optional
from pydantic import ValidationError

from taskpilot.core.models import TaskDraft
from taskpilot.ui.state_manager import StateManager
from taskpilot.utils.config import Config

CUSTOM_FIELD = "__custom__"


def _field_label(field: str) -> str:
    return Config.TASK_FIELDS.get(field, {}).get("label", field)


def _render_field_editor(state_key: str, prefix: str):
    """Edit the custom field dict kept under `state_key` in session state."""
    fields: Dict[str, Any] = StateManager.get(state_key, {})

    for name, value in list(fields.items()):
        col1, col2 = st.columns([6, 1])
        col1.markdown(f"`{_field_label(name)}`: {value}")
        if col2.button("✖", key=f"{prefix}_drop_{name}", help="Remove field"):
            fields = dict(fields)
            del fields[name]
            StateManager.set(state_key, fields)
            st.rerun()

    nonce = StateManager.get("field_nonce", 0)
    options = [f for f in Config.get_task_field_names() if f not in fields] + [CUSTOM_FIELD]
    col1, col2 = st.columns(2)
    with col1:
        choice = st.selectbox(
            "Azure field",
            options,
            format_func=lambda f: "✏️ Other (reference name)" if f == CUSTOM_FIELD else _field_label(f),
            key=f"{prefix}_field_choice_{nonce}",
        )
    with col2:
        if choice == CUSTOM_FIELD:
            name = st.text_input("Field reference name", placeholder="Custom.MyField", key=f"{prefix}_field_name_{nonce}")
            value = st.text_input("Value", key=f"{prefix}_field_value_{nonce}")
        else:
            field_def = Config.TASK_FIELDS[choice]
            name = choice
            if field_def.get("type") == "dropdown":
                value = st.selectbox(field_def["label"], [""] + field_def.get("values", []), key=f"{prefix}_field_value_{nonce}")
            elif field_def.get("type") == "number":
                value = st.number_input(field_def["label"], min_value=0.0, step=0.5, value=None,
                                        placeholder=field_def.get("placeholder"), key=f"{prefix}_field_value_{nonce}")
            else:
                value = st.text_input(field_def["label"], placeholder=field_def.get("placeholder", ""), key=f"{prefix}_field_value_{nonce}")

    if st.button("➕ Add Field", key=f"{prefix}_add_field_{nonce}"):
        name = (name or "").strip()
        if not name or value is None or value == "":
            st.warning("Pick a field and enter a value first.")
        else:
            StateManager.set(state_key, {**fields, name: value})
            StateManager.set("field_nonce", nonce + 1)
            st.rerun()


def _build_task(title: str, description: str, assigned_to: str, fields: Dict[str, Any]) -> Optional[TaskDraft]:
    try:
        return TaskDraft(title=title, description=description, assigned_to=assigned_to, custom_fields=fields)
    except ValidationError as e:
        st.error(f"⚠️ {e.errors()[0]['msg']}")
        return None


def _render_editor(task: Optional[TaskDraft], prefix: str, state_key: str) -> Optional[TaskDraft]:
    """Inputs for one task. Returns the built task when the submit button is pressed."""
    nonce = StateManager.get("form_nonce", 0)
    title = st.text_input("Task Title *", value=task.title if task else "", key=f"{prefix}_title_{nonce}")
    description = st.text_area("Description", value=task.description if task else "", key=f"{prefix}_desc_{nonce}")
    assigned_to = st.text_input(
        "Assign To (email)",
        value=(task.assigned_to or "") if task else "",
        placeholder="user@company.com",
        key=f"{prefix}_assignee_{nonce}",
    )

    st.markdown("**Fields**")
    _render_field_editor(state_key, prefix)

    label = "💾 Save Changes" if task else "➕ Add Task"
    if st.button(label, type="primary", key=f"{prefix}_submit_{nonce}"):
        return _build_task(title, description, assigned_to, StateManager.get(state_key, {}))
    return None


def render_task_form():
    """Task list with add, edit, duplicate and remove."""
    st.subheader("📝 Tasks")
    tasks = StateManager.tasks()
    editing_index = StateManager.get("editing_index")

    if editing_index is not None and editing_index < len(tasks):
        with st.container(border=True):
            st.markdown(f"**Editing task {editing_index + 1}**")
            updated = _render_editor(tasks[editing_index], "edit", "edit_fields")
            if updated:
                StateManager.update_task(editing_index, updated)
                st.rerun()
            if st.button("Cancel", key="edit_cancel"):
                StateManager.cancel_editing()
                st.rerun()
    else:
        with st.expander("➕ New Task", expanded=not tasks):
            created = _render_editor(None, "new", "draft_fields")
            if created:
                StateManager.add_task(created)
                st.rerun()

    if not tasks:
        st.info("No tasks yet. Add a task or load a template.")
        return

    for i, task in enumerate(tasks):
        with st.container(border=True):
            col1, col2, col3, col4 = st.columns([6, 1, 1, 1])
            with col1:
                st.markdown(f"**{i + 1}. {task.title}**")
                details = []
                if task.assigned_to:
                    details.append(f"👤 {task.assigned_to}")
                if task.custom_fields:
                    details.append(", ".join(f"{_field_label(k)}: {v}" for k, v in task.custom_fields.items()))
                if details:
                    st.caption(" | ".join(details))
            if col2.button("✏️", key=f"task_edit_{i}", help="Edit"):
                StateManager.start_editing(i)
                st.rerun()
            if col3.button("📄", key=f"task_dup_{i}", help="Duplicate"):
                StateManager.duplicate_task(i)
                st.rerun()
            if col4.button("🗑️", key=f"task_remove_{i}", help="Remove"):
                StateManager.remove_task(i)
                st.rerun()
