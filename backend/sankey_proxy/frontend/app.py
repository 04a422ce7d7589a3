"""Streamlit client: sign in, filter, and explore Snowflake flows as a Sankey diagram.

Run with ``streamlit run backend/sankey_proxy/frontend/app.py`` while the
gateway is listening on SANKEY_API_BASE_URL.
"""

from __future__ import annotations

import logging

import streamlit as st

from sankey_proxy.frontend.api_client import ApiError, SankeyApiClient, SessionExpiredError
from sankey_proxy.frontend.filter_panel import FilterPanel, render_filter_panel
from sankey_proxy.frontend.sankey_diagram import SankeyDiagram
from sankey_proxy.models.data_models import FilterSelection

logger = logging.getLogger(__name__)

TITLE = "Snowflake Sankey Visualization"


def _init_state() -> None:
    defaults = {
        "api": None,
        "authenticated": False,
        "user_email": "",
        "panel": None,
        "sankey_data": [],
        "pending_node": None,
        "needs_reload": True,
    }
    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value
    if st.session_state.api is None:
        st.session_state.api = SankeyApiClient()


def _mark_reload(_selection: FilterSelection) -> None:
    st.session_state.needs_reload = True


def _new_panel() -> FilterPanel:
    panel = FilterPanel()
    panel.subscribe(_mark_reload)
    return panel


def logout() -> None:
    api: SankeyApiClient = st.session_state.api
    try:
        api.logout()
    except ApiError as exc:
        logger.error("Logout failed: %s", exc)
    st.session_state.authenticated = False
    st.session_state.user_email = ""
    st.session_state.panel = None
    st.session_state.sankey_data = []
    st.session_state.pending_node = None


def login(token: str) -> None:
    api: SankeyApiClient = st.session_state.api
    try:
        result = api.send_auth_token(token.strip())
    except ApiError as exc:
        logger.error("Login failed: %s", exc)
        st.error(f"Login failed: {exc}")
        return
    user = result.get("user") or {}
    st.session_state.authenticated = True
    st.session_state.user_email = user.get("email") or "User"
    st.session_state.panel = _new_panel()
    st.session_state.needs_reload = True
    st.rerun()


def _session_expired() -> None:
    st.warning("Session expired. Please login again.")
    logout()
    st.stop()


def load_categories(panel: FilterPanel) -> None:
    if panel.loaded:
        return
    try:
        panel.on_categories_loaded(st.session_state.api.get_filter_categories())
    except SessionExpiredError:
        _session_expired()
    except ApiError as exc:
        logger.error("Error loading categories: %s", exc)
        st.sidebar.error(f"Error loading categories: {exc}")


def load_data(panel: FilterPanel) -> None:
    with st.spinner("Loading data..."):
        try:
            st.session_state.sankey_data = st.session_state.api.get_sankey_data(panel.selection)
        except SessionExpiredError:
            _session_expired()
        except ApiError as exc:
            logger.error("Error loading Sankey data: %s", exc)
            st.error(f"Error loading Sankey data: {exc}")
    st.session_state.needs_reload = False


def _request_node_filter(label: str) -> None:
    st.session_state.pending_node = label


def render_node_prompt(panel: FilterPanel, diagram: SankeyDiagram) -> None:
    """Node picker standing in for a click on the chart, with the confirm step."""
    if not diagram.graph.nodes:
        return
    col_pick, col_go = st.columns([4, 1])
    with col_pick:
        label = st.selectbox("Drill into node", options=diagram.graph.nodes, index=None, placeholder="Select a node")
    with col_go:
        st.write("")
        if st.button("Filter", disabled=label is None) and label is not None:
            diagram.click_node(label)

    pending = st.session_state.pending_node
    if pending is None:
        return
    st.info(
        f"Filter by: {pending}?\n\n"
        "This will update the visualization to show only data related to this node."
    )
    col_yes, col_no = st.columns(2)
    if col_yes.button("Apply filter", type="primary"):
        panel.apply_node_click(pending, st.session_state.sankey_data)
        st.session_state.pending_node = None
        st.rerun()
    if col_no.button("Cancel"):
        st.session_state.pending_node = None
        st.rerun()


def render_login() -> None:
    st.subheader(f"Welcome to {TITLE}")
    st.write("Please login with your Azure AD account to access the application.")
    with st.form("login_form"):
        token = st.text_input("Azure AD access token", type="password")
        if st.form_submit_button("Login with Azure AD") and token:
            login(token)


def main() -> None:
    st.set_page_config(page_title=TITLE, layout="wide")
    _init_state()

    header, auth_section = st.columns([4, 1])
    header.title(TITLE)
    if st.session_state.authenticated:
        auth_section.caption(st.session_state.user_email)
        if auth_section.button("Logout"):
            logout()
            st.rerun()

    if not st.session_state.authenticated:
        render_login()
        return

    panel: FilterPanel = st.session_state.panel
    load_categories(panel)
    render_filter_panel(panel)

    if st.session_state.needs_reload:
        load_data(panel)

    diagram = SankeyDiagram(st.container(), on_node_click=_request_node_filter)
    diagram.render(st.session_state.sankey_data)
    render_node_prompt(panel, diagram)


main()
