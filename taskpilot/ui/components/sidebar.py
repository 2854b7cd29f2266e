import streamlit as st
from pydantic import ValidationError

from taskpilot.core.errors import RemoteCallError
from taskpilot.core.models import AdoSettings
from taskpilot.integrations.ado_client import ADOClient
from taskpilot.storage import STORE_MODES
from taskpilot.utils.config import Config

STORE_LABELS = {
    "azure": "☁️ Azure DevOps (shared)",
    "local": "💾 Local file",
}


def render_sidebar():
    """Render sidebar configuration and return config dictionary."""
    st.sidebar.header("⚙️ Configuration")

    # --- ADO Configuration ---
    with st.sidebar.expander("Azure DevOps Settings", expanded=True):
        ado_pat = st.text_input(
            "Personal Access Token (PAT)",
            value=Config.ADO_PAT or "",
            type="password",
            key="ado_pat",
            help="Needs Work Items (Read & Write) scope",
        )
        ado_org = st.text_input(
            "Organization",
            value=Config.ADO_ORGANIZATION or "",
            key="ado_org",
            help='dev.azure.com: the organization name (e.g. "mycompany"). '
                 'visualstudio.com: the full domain (e.g. "mycompany.visualstudio.com")',
        )
        ado_project = st.text_input("Project Name", value=Config.ADO_PROJECT or "", key="ado_project")

    # --- Template storage ---
    with st.sidebar.expander("Template Storage", expanded=False):
        default_mode = Config.TEMPLATE_STORE if Config.TEMPLATE_STORE in STORE_MODES else STORE_MODES[0]
        template_store = st.radio(
            "Save templates to",
            options=list(STORE_MODES),
            index=STORE_MODES.index(default_mode),
            format_func=STORE_LABELS.get,
            key="template_store_mode",
        )
        if template_store == "local":
            st.caption(f"File: `{Config.LOCAL_TEMPLATE_FILE}`")
        else:
            st.caption("Templates are stored as tagged work items and shared with your team.")

    settings = None
    settings_error = None
    if ado_pat and ado_org and ado_project:
        try:
            settings = AdoSettings(token=ado_pat, organization=ado_org, project=ado_project)
        except ValidationError as e:
            settings_error = e.errors()[0]["msg"]
            st.sidebar.error(f"⚠️ {settings_error}")
    else:
        st.sidebar.info("ℹ️ Enter your PAT, organization and project to connect.")

    if st.sidebar.button("🔌 Test Connection", disabled=settings is None):
        with st.sidebar:
            with st.spinner("Connecting..."):
                try:
                    ADOClient(settings).connect()
                    st.success(f"✅ Connected to {settings.organization_url}")
                except RemoteCallError as e:
                    st.error(f"❌ {e}")

    return {
        "settings": settings,
        "settings_error": settings_error,
        "template_store": template_store,
    }
