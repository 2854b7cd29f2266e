import streamlit as st
import pandas as pd

from taskpilot.core.models import CreationReport


def display_creation_report(report: CreationReport, client=None):
    """Display the outcome of a task creation run."""

    st.markdown("---")
    st.header("📊 Task Creation Results")

    if not report.results:
        st.warning("Nothing was created: no stories or no tasks were selected.")
        return

    # --- Metrics ---
    col1, col2, col3 = st.columns(3)
    col1.metric("Created", len(report.succeeded))
    col2.metric("Failed", len(report.failed))
    col3.metric("Success Rate", f"{len(report.succeeded) / report.total * 100:.0f}%")

    if not report.failed:
        st.success(f"✅ All {report.total} tasks were created.")
    elif report.succeeded:
        st.warning(f"⚠️ {len(report.failed)} of {report.total} tasks could not be created.")
    else:
        st.error("❌ No task could be created.")

    # --- Per-pair table ---
    results_df = pd.DataFrame([
        {
            "Status": "✅" if r.ok else "❌",
            "User Story": f"#{r.user_story_id} {r.user_story_title}",
            "Task": r.task_title,
            "Task ID": str(r.task_id) if r.task_id else "",
            "Link": client.work_item_web_url(r.task_id) if client and r.task_id else None,
            "Error": r.error or "",
        }
        for r in report.results
    ])
    if client is None:
        results_df = results_df.drop(columns=["Link"])
    st.dataframe(
        results_df,
        width='stretch',
        hide_index=True,
        column_config={"Link": st.column_config.LinkColumn("Link", display_text="Open")},
    )

    if report.failed:
        with st.expander("⚠️ Errors", expanded=True):
            for r in report.failed:
                st.markdown(f"• **{r.task_title}** under #{r.user_story_id}: {r.error}")

    st.caption(f"Finished at {report.finished_at.strftime('%Y-%m-%d %H:%M:%S')} UTC")
