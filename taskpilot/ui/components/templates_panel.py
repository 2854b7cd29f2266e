import asyncio
import streamlit as st
from typing import Optional

from taskpilot.core.errors import TemplateStoreError
from taskpilot.storage import TemplateStore
from taskpilot.ui.state_manager import StateManager


def _reload(store: TemplateStore, source: str):
    try:
        StateManager.set("templates", asyncio.run(store.list_templates()))
        StateManager.set("template_error", None)
    except TemplateStoreError as e:
        StateManager.set("templates", [])
        StateManager.set("template_error", str(e))
    StateManager.set("templates_source", source)


def render_templates_panel(store: Optional[TemplateStore], source: str):
    """
    Save, load, delete and clear task templates.

    Args:
        store: Active template store, or None when it cannot be built yet
        source: Identifies the store (mode and project); templates reload when it changes
    """
    with st.expander("📚 Task Templates", expanded=False):
        if store is None:
            st.info("Connect to Azure DevOps to use shared templates, or switch to local storage.")
            return

        if StateManager.get("templates_source") != source:
            with st.spinner("Loading templates..."):
                _reload(store, source)

        if StateManager.get("template_error"):
            st.error(f"❌ {StateManager.get('template_error')}")

        # --- Save ---
        tasks = StateManager.tasks()
        col1, col2 = st.columns([3, 1])
        name = col1.text_input("Template name", key="template_name", placeholder="e.g. Standard story tasks")
        with col2:
            st.write("")
            save_clicked = st.button("💾 Save", disabled=not tasks, help="Save the current task list")
        if save_clicked:
            if not name.strip():
                st.warning("Enter a template name.")
            else:
                try:
                    template = asyncio.run(store.save_template(name.strip(), tasks))
                    st.success(f"✅ Template '{template.name}' saved ({len(template.tasks)} tasks)")
                    _reload(store, source)
                except TemplateStoreError as e:
                    st.error(f"❌ {e}")

        # --- Saved templates ---
        templates = StateManager.get("templates", [])
        if not templates:
            st.caption("No saved templates.")
            return

        st.markdown("---")
        for template in templates:
            col1, col2, col3 = st.columns([5, 1, 1])
            created = template.created_at.strftime("%Y-%m-%d")
            col1.markdown(f"**{template.name}**  \n{len(template.tasks)} task(s) · {created}")
            if col2.button("📥", key=f"tpl_load_{template.id}", help="Load (replaces current tasks)"):
                StateManager.replace_tasks(template.tasks)
                st.rerun()
            if col3.button("🗑️", key=f"tpl_delete_{template.id}", help="Delete template"):
                try:
                    asyncio.run(store.delete_template(template))
                    _reload(store, source)
                except TemplateStoreError as e:
                    StateManager.set("template_error", str(e))
                st.rerun()

        if st.button("🔄 Refresh"):
            _reload(store, source)
            st.rerun()

        confirm = st.checkbox("I want to delete all templates", key="confirm_clear_templates")
        if st.button("🧹 Clear All Templates", disabled=not confirm):
            try:
                asyncio.run(store.clear())
                st.success("All templates deleted")
            except TemplateStoreError as e:
                st.error(f"❌ {e}")
            _reload(store, source)
