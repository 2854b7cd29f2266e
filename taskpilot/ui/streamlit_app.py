"""Streamlit Web UI for TaskPilot."""
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import streamlit as st
import asyncio
import logging
import warnings
from typing import List

# Suppress Streamlit warnings globally
warnings.filterwarnings('ignore', message='.*ScriptRunContext.*')
warnings.filterwarnings('ignore', category=UserWarning, module='streamlit')

# Suppress Streamlit loggers
logging.getLogger('streamlit.runtime.scriptrunner.script_runner').setLevel(logging.CRITICAL)
logging.getLogger('streamlit.runtime.state').setLevel(logging.CRITICAL)

# Import core logic
from taskpilot.core.errors import TaskPilotError
from taskpilot.core.models import CreationReport, SprintSelection, TaskDraft
from taskpilot.core.orchestrator import Orchestrator
from taskpilot.integrations.ado_client import ADOClient
from taskpilot.storage import create_template_store
from taskpilot.utils.config import Config
from taskpilot.utils.logging_setup import configure_logging

# Import UI components
from taskpilot.ui.state_manager import StateManager
from taskpilot.ui.components.sidebar import render_sidebar
from taskpilot.ui.components.stories_list import display_sprint_stories
from taskpilot.ui.components.task_form import render_task_form
from taskpilot.ui.components.templates_panel import render_templates_panel
from taskpilot.ui.components.reporting import display_creation_report

logger = logging.getLogger("taskpilot.ui")

# Page config
st.set_page_config(
    page_title="TaskPilot",
    page_icon="🧭",
    layout="wide",
    initial_sidebar_state="expanded"
)

# Custom CSS
st.markdown("""
    <style>
    .main-header {
        font-size: 2.5rem;
        font-weight: bold;
        color: #0078d4;
        text-align: center;
        margin-bottom: 2rem;
    }
    .stProgress > div > div > div {
        background-color: #0078d4;
    }
    </style>
""", unsafe_allow_html=True)

URL_FORMATS_HELP = """
Paste the address of a sprint backlog or taskboard:

- `https://dev.azure.com/{org}/{project}/_sprints/backlog/{team}/{project}/{sprint}`
- `https://dev.azure.com/{org}/{project}/_sprints/taskboard/{team}/{project}/{sprint}`
- `https://{org}.visualstudio.com/{project}/_sprints/backlog/{team}/{project}/{sprint}`
- `https://dev.azure.com/{org}/{project}/_backlogs/backlog/{team}/{sprint}`

The sprint is the last part of the path. The team follows `backlog` or
`taskboard`; without a team, the project's default team is searched.
"""


async def apply_tasks_with_progress(orchestrator: Orchestrator, selection: SprintSelection,
                                    tasks: List[TaskDraft], progress_container=None) -> CreationReport:
    """Create the tasks, updating the progress bar after every pair."""
    total = len(selection.stories) * len(tasks)
    results = []
    async for result in orchestrator.iter_apply_tasks(selection, tasks):
        results.append(result)
        if progress_container:
            icon = "✅" if result.ok else "❌"
            progress_container.progress(
                len(results) / total,
                text=f"{icon} {len(results)}/{total}: '{result.task_title}' → #{result.user_story_id}",
            )
    return CreationReport(results=results)


def main():
    """Main Application Loop."""
    configure_logging()
    StateManager.init_state()

    # Header
    st.markdown('<div class="main-header">🧭 TaskPilot</div>', unsafe_allow_html=True)
    st.caption("Add the same set of tasks to every user story of a sprint.")
    st.markdown("---")

    # Sidebar
    config = render_sidebar()
    settings = config["settings"]
    client = ADOClient(settings) if settings else None

    col1, col2 = st.columns(2)

    with col1:
        # 1. Sprint lookup
        st.subheader("🔗 Sprint")
        sprint_url = st.text_input("Sprint URL", key="sprint_url", placeholder="https://dev.azure.com/...")
        with st.expander("ℹ️ Supported URL formats"):
            st.markdown(URL_FORMATS_HELP)

        if st.button("🚀 Fetch User Stories", type="primary", disabled=client is None or not sprint_url.strip()):
            with st.spinner("Loading sprint from Azure DevOps..."):
                try:
                    selection = asyncio.run(Orchestrator(client).load_sprint(sprint_url.strip()))
                    StateManager.set_selection(selection)
                except TaskPilotError as e:
                    logger.warning("Sprint lookup failed: %s", e)
                    StateManager.clear_selection(str(e))

        if StateManager.get("fetch_error"):
            st.error(f"❌ {StateManager.get('fetch_error')}")

        # 2. Templates and tasks
        store = None
        store_mode = config["template_store"]
        if store_mode == "local" or client is not None:
            store = create_template_store(store_mode, client=client)
        source = f"{store_mode}:{settings.organization}/{settings.project}" if settings else store_mode
        render_templates_panel(store, source)

        render_task_form()

    with col2:
        selection = StateManager.get("selection")
        if selection is not None:
            display_sprint_stories(selection, client)
        else:
            st.info("Fetch a sprint to see its user stories.")

    # 3. Apply
    selection = StateManager.get("selection")
    tasks = StateManager.tasks()
    st.markdown("---")
    if selection is not None and selection.stories and tasks:
        total = len(selection.stories) * len(tasks)
        st.markdown(f"### ⚡ Create {total} tasks ({len(tasks)} × {len(selection.stories)} stories)")
        if st.button("✅ Add Tasks to User Stories", type="primary", disabled=client is None):
            progress_bar = st.progress(0.0, text="Starting...")
            report = asyncio.run(apply_tasks_with_progress(Orchestrator(client), selection, tasks, progress_bar))
            StateManager.set_report(report)
            st.rerun()
    else:
        st.caption("Fetch a sprint with user stories and add at least one task to create tasks.")

    # 4. Results
    if StateManager.get("show_results") and StateManager.get("creation_report") is not None:
        display_creation_report(StateManager.get("creation_report"), client)
        col1, col2 = st.columns(2)
        with col1:
            if st.button("Close Results"):
                StateManager.close_report()
                st.rerun()
        with col2:
            if st.button("🔄 Start New Session"):
                StateManager.clear_all_data()
                st.rerun()


if __name__ == "__main__":
    Config.load_config()
    main()
