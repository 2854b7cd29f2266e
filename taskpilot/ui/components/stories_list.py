import streamlit as st
import pandas as pd

from taskpilot.core.models import SprintSelection
from taskpilot.ui.state_manager import StateManager


def display_sprint_stories(selection: SprintSelection, client=None):
    """Show the user stories of the fetched sprint, each removable from the selection."""
    iteration = selection.iteration
    locator = selection.locator

    st.subheader(f"📋 User Stories ({len(selection.stories)})")
    team = f" | **Team:** {locator.team_name}" if locator.team_name else ""
    st.caption(f"**Sprint:** {iteration.name}{team} | **Iteration:** `{iteration.path}`")

    if not selection.stories:
        st.warning("No user stories found in the specified sprint.")
        return

    stories_df = pd.DataFrame([
        {
            "ID": s.id,
            "Title": s.title[:60] + "..." if len(s.title) > 60 else s.title,
            "State": s.state or "",
            "Area Path": s.area_path or selection.area_path,
            "Link": client.work_item_web_url(s.id) if client else None,
        }
        for s in selection.stories
    ])
    if client is None:
        stories_df = stories_df.drop(columns=["Link"])
    st.dataframe(
        stories_df,
        width='stretch',
        hide_index=True,
        column_config={"Link": st.column_config.LinkColumn("Link", display_text="Open")},
    )

    with st.expander("🗑️ Remove stories from this run", expanded=False):
        st.caption("Removed stories are skipped when tasks are created; nothing changes in Azure DevOps.")
        for story in selection.stories:
            col1, col2 = st.columns([6, 1])
            col1.markdown(f"**#{story.id}** {story.title}")
            if col2.button("✖", key=f"remove_story_{story.id}", help="Remove from selection"):
                StateManager.remove_story(story.id)
                st.rerun()
