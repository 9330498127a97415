"""
Streamlit Frontend for BarControl

The screen a user keeps open on their phone during a night out.

DESIGN PRINCIPLES:
1. One tap to add, one tap to order the same thing again
2. The total and the budget are always on screen
3. Destructive actions (remove, clear history) ask first
4. A failed save is shown, never hidden

All state lives in the BarControlApp; this module only renders it and
forwards user actions.
"""

import asyncio
from typing import Optional

import streamlit as st

from barcontrol.audit import configure_logging
from barcontrol.config import get_settings
from barcontrol.exceptions import (
    BarControlError,
    CaptureUnavailableError,
    NotFoundError,
    ValidationError,
)
from barcontrol.formatting import format_currency, format_date, format_timestamp
from barcontrol.ledger import ItemDraft
from barcontrol.models.consumption import BudgetTier, ConsumptionItem
from barcontrol.orchestrator import BarControlApp, create_app
from barcontrol.services.capture import (
    CaptureAttempt,
    StaticImageStrategy,
    decode_data_url,
)
from barcontrol.services.storage import SaveOutcome


# Page configuration
st.set_page_config(
    page_title="BarControl",
    page_icon="🍺",
    layout="centered",
    initial_sidebar_state="collapsed",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
    }
    .big-number {
        font-size: 2.5em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)


TIER_ICONS = {
    BudgetTier.UNBOUNDED: "⚪",
    BudgetTier.SAFE: "🟢",
    BudgetTier.CAUTION: "🟡",
    BudgetTier.NEAR: "🟠",
    BudgetTier.EXCEEDED: "🔴",
}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_app() -> BarControlApp:
    """Create and load the application once per server process."""
    settings = get_settings()
    configure_logging(settings.app.effective_log_level)
    app = create_app(settings)
    app.init()
    return app


def money(value) -> str:
    return format_currency(value, get_settings().app.currency_symbol)


def warn_if_not_saved(outcome: Optional[SaveOutcome]) -> None:
    if outcome == SaveOutcome.FAILED:
        st.warning("⚠️ Storage is full or unavailable. Changes are kept only until the app closes.")
    elif outcome == SaveOutcome.DEGRADED:
        st.info("ℹ️ Storage is nearly full. Photos of older sessions were not saved.")


def attach_photo(app: BarControlApp, draft: ItemDraft, camera_file, upload_file) -> bool:
    """
    Run the capture chain over the camera shot and the uploaded file.

    Returns False (and shows why) if neither produced a usable photo.
    """
    strategies = []
    if camera_file is not None:
        strategies.append(StaticImageStrategy(camera_file.getvalue(), name="camera"))
    if upload_file is not None:
        strategies.append(StaticImageStrategy(upload_file.getvalue(), name="upload"))
    if not strategies:
        return True

    pipeline = app.capture_pipeline(strategies)
    try:
        run_async(pipeline.capture_into(draft, CaptureAttempt()))
    except CaptureUnavailableError as e:
        st.error("📷 Could not use that photo. Try another one or add the item without it.")
        with st.expander("Details"):
            for name, reason in e.failures:
                st.write(f"**{name}**: {reason}")
        return False
    return True


def main():
    """Main application entry point."""
    app = get_app()

    st.sidebar.title("🍺 BarControl")
    page = st.sidebar.radio(
        "Navigate to:",
        ["🍻 Current Tab", "📜 History", "⚙️ Budget"],
        index=0,
    )

    if page == "🍻 Current Tab":
        render_tab_page(app)
    elif page == "📜 History":
        render_history_page(app)
    elif page == "⚙️ Budget":
        render_budget_page(app)


# =============================================================================
# CURRENT TAB
# =============================================================================

def render_budget_header(app: BarControlApp):
    status = app.budget_status()
    location = app.budget.location

    st.markdown(f'<div class="big-number">{money(status.total)}</div>', unsafe_allow_html=True)
    if location:
        st.caption(f"📍 {location}")

    if status.tier == BudgetTier.UNBOUNDED:
        st.caption(status.message)
        return

    st.progress(status.percentage / 100)
    message = f"{TIER_ICONS[status.tier]} {status.message} ({status.percentage:.0f}% of {money(status.limit)})"
    if status.alert:
        st.error(message)
    elif status.tier == BudgetTier.NEAR:
        st.warning(message)
    else:
        st.caption(message)


def render_tab_page(app: BarControlApp):
    """Render the active tab: totals, add form, items, finish."""
    st.title("🍻 Current Tab")

    if "editing_id" not in st.session_state:
        st.session_state.editing_id = None

    render_budget_header(app)
    st.markdown("---")

    if st.session_state.editing_id:
        render_edit_form(app, st.session_state.editing_id)
    else:
        render_add_form(app)

    st.markdown("---")
    render_items(app)

    if not app.ledger.is_empty():
        st.markdown("---")
        render_finish(app)


def render_add_form(app: BarControlApp):
    st.subheader("➕ Add item")

    with st.form("add_item", clear_on_submit=True):
        col1, col2 = st.columns([2, 1])
        with col1:
            name = st.text_input("What did you order?", placeholder="Beer")
        with col2:
            price = st.text_input("Price", placeholder="12,50")

        with st.expander("📷 Photo (optional)"):
            camera_file = st.camera_input("Take a photo")
            upload_file = st.file_uploader(
                "...or choose one",
                type=["jpg", "jpeg", "png", "webp"],
            )

        submitted = st.form_submit_button("Add", type="primary")

    if not submitted:
        return

    draft = ItemDraft(name=name, price=price)
    if not attach_photo(app, draft, camera_file, upload_file):
        return

    try:
        app.ledger.commit_draft(draft)
    except ValidationError as e:
        st.error(f"❌ {e.message}")
        return

    warn_if_not_saved(app.ledger.last_save_outcome)
    st.rerun()


def render_edit_form(app: BarControlApp, item_id: str):
    try:
        draft = ItemDraft.from_item(app.ledger.get_item(item_id))
    except NotFoundError:
        st.session_state.editing_id = None
        st.rerun()
        return

    st.subheader("✏️ Edit item")

    with st.form("edit_item"):
        col1, col2 = st.columns([2, 1])
        with col1:
            name = st.text_input("Name", value=draft.name)
        with col2:
            price = st.text_input("Price", value=format(draft.price, "f"))

        remove_photo = False
        if draft.photo:
            st.image(decode_data_url(draft.photo), width=160)
            remove_photo = st.checkbox("Remove photo")

        upload_file = st.file_uploader("New photo", type=["jpg", "jpeg", "png", "webp"])

        col_save, col_cancel = st.columns(2)
        with col_save:
            saved = st.form_submit_button("💾 Save", type="primary")
        with col_cancel:
            cancelled = st.form_submit_button("Cancel")

    if cancelled:
        st.session_state.editing_id = None
        st.rerun()
    if not saved:
        return

    draft.name = name
    draft.price = price
    if remove_photo:
        draft.clear_photo()
    if not attach_photo(app, draft, None, upload_file):
        return

    try:
        app.ledger.commit_draft(draft)
    except BarControlError as e:
        st.error(f"❌ {e}")
        return

    st.session_state.editing_id = None
    warn_if_not_saved(app.ledger.last_save_outcome)
    st.rerun()


def render_item(app: BarControlApp, item: ConsumptionItem):
    col_photo, col_info, col_actions = st.columns([1, 3, 2])

    with col_photo:
        if item.photo:
            st.image(decode_data_url(item.photo), use_container_width=True)
        else:
            st.markdown("🍺")

    with col_info:
        st.markdown(f"**{item.name}**  \n{money(item.price)}")
        st.caption(format_timestamp(item.timestamp))

    with col_actions:
        if st.button("🔁 Again", key=f"dup_{item.id}"):
            app.ledger.duplicate_item(item.id)
            st.rerun()
        if st.button("✏️ Edit", key=f"edit_{item.id}"):
            st.session_state.editing_id = item.id
            st.rerun()
        confirm = st.checkbox("Sure?", key=f"confirm_{item.id}")
        if st.button("🗑️ Remove", key=f"del_{item.id}", disabled=not confirm):
            app.ledger.remove_item(item.id)
            st.rerun()


def render_items(app: BarControlApp):
    items = app.ledger.items
    st.subheader(f"🧾 Items ({len(items)})")

    if not items:
        st.info("Nothing on the tab yet.")
        return

    for item in items:
        render_item(app, item)


def render_finish(app: BarControlApp):
    st.subheader("✅ Close the tab")

    col1, col2 = st.columns(2)
    with col1:
        split_count = int(st.number_input("People", min_value=1, value=1, step=1))
    with col2:
        include_tip = st.checkbox("Add 10% service", value=False)

    split = app.preview_split(split_count, include_tip)
    st.markdown(f"Subtotal: **{money(split.subtotal)}**")
    if split.has_tip:
        st.markdown(f"Service: **{money(split.tip_amount)}**")
    st.markdown(f"Total: **{money(split.final_total)}**")
    if split.split_count > 1:
        st.markdown(f"Per person: **{money(split.total_per_person)}**")

    if st.button("Close tab", type="primary"):
        try:
            session = app.finish_session(split_count, include_tip)
        except ValidationError as e:
            st.error(f"❌ {e.message}")
            return
        warn_if_not_saved(app.last_save_outcome)
        st.success(f"Saved to history: {money(session.final_total)}")
        st.rerun()


# =============================================================================
# HISTORY
# =============================================================================

def render_history_page(app: BarControlApp):
    """Render closed sessions, newest first."""
    st.title("📜 History")

    sessions = app.history
    if not sessions:
        st.info("No closed tabs yet.")
        return

    st.metric("All time", money(app.history_total()))

    for session in sessions:
        title = f"{format_date(session.date)} · {money(session.final_total)}"
        if session.location:
            title += f" · {session.location}"

        with st.expander(title):
            for item in session.items:
                col_photo, col_info = st.columns([1, 4])
                with col_photo:
                    if item.photo:
                        st.image(decode_data_url(item.photo), use_container_width=True)
                with col_info:
                    st.markdown(f"{item.name}: {money(item.price)}")
                    st.caption(format_timestamp(item.timestamp))

            st.markdown(f"Subtotal: {money(session.total)}")
            if session.has_tip:
                st.markdown(f"Service: {money(session.tip_amount)}")
            if session.split_count > 1:
                st.markdown(
                    f"Split {session.split_count} ways: "
                    f"**{money(session.total_per_person)}** each"
                )

    st.markdown("---")
    confirm = st.checkbox("I want to delete the whole history")
    if st.button("🗑️ Clear history", disabled=not confirm):
        app.clear_history()
        warn_if_not_saved(app.last_save_outcome)
        st.rerun()


# =============================================================================
# BUDGET
# =============================================================================

def render_budget_page(app: BarControlApp):
    """Render budget limit and location settings."""
    st.title("⚙️ Budget")

    budget = app.budget
    with st.form("budget"):
        limit = st.number_input(
            "Spending limit (0 = no limit)",
            min_value=0.0,
            value=float(budget.limit),
            step=10.0,
            format="%.2f",
        )
        location = st.text_input("Where are you?", value=budget.location or "")
        saved = st.form_submit_button("💾 Save", type="primary")

    if saved:
        try:
            app.set_budget(limit, location)
        except ValidationError as e:
            st.error(f"❌ {e.message}")
            return
        warn_if_not_saved(app.last_save_outcome)
        st.success("Budget saved")


if __name__ == "__main__":
    main()
