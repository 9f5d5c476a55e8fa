"""
GetStocks Relay Dashboard - Streamlit Application.
View statistics and history of relayed downloads.
Includes password authentication for security.
"""

import os
import hashlib
import streamlit as st
from datetime import datetime, timedelta
from typing import Optional

from config import get_db_path
from services.database import DatabaseService, DatabaseError
from models.schemas import Channel, DownloadLog, JobOutcome


# Page configuration
st.set_page_config(
    page_title="GetStocks Relay Dashboard",
    page_icon="📦",
    layout="wide",
    initial_sidebar_state="expanded"
)

OUTCOME_BADGES = {
    JobOutcome.READY: "✅ Ready",
    JobOutcome.FAILED: "❌ Failed",
    JobOutcome.TIMED_OUT: "⏱️ Timed out",
}

CHANNEL_LABELS = {
    "All": None,
    "Telegram": Channel.TELEGRAM,
    "Web": Channel.WEB,
}

OUTCOME_LABELS = {
    "All": None,
    "Ready": JobOutcome.READY,
    "Failed": JobOutcome.FAILED,
    "Timed out": JobOutcome.TIMED_OUT,
}


def check_password() -> bool:
    """
    Simple password authentication for the dashboard.

    Returns True if the user is authenticated.
    Password is set via DASHBOARD_PASSWORD environment variable.
    """
    correct_password = os.getenv("DASHBOARD_PASSWORD")

    # No password set: development mode
    if not correct_password:
        st.sidebar.warning(
            "⚠️ No DASHBOARD_PASSWORD set. "
            "Set it in your .env file for production use."
        )
        return True

    if "password_correct" not in st.session_state:
        st.session_state.password_correct = False

    if st.session_state.password_correct:
        return True

    st.markdown("## 🔐 Dashboard Login")
    st.markdown("Please enter the dashboard password to continue.")

    with st.form("login_form"):
        password = st.text_input("Password", type="password")
        submit = st.form_submit_button("Login")

        if submit:
            password_hash = hashlib.sha256(password.encode()).hexdigest()
            correct_hash = hashlib.sha256(correct_password.encode()).hexdigest()

            if password_hash == correct_hash:
                st.session_state.password_correct = True
                st.rerun()
            else:
                st.error("❌ Incorrect password. Please try again.")

    return False


def init_database() -> Optional[DatabaseService]:
    """Open the download history with error handling."""
    try:
        db = DatabaseService(db_path=get_db_path())
        db.connect()
        return db
    except DatabaseError as e:
        st.error(f"⚠️ Database Error: {e}")
        st.info("Please ensure the database file path is accessible.")
        return None


def render_sidebar(db: DatabaseService) -> dict:
    """Render sidebar with filters and stats."""
    st.sidebar.title("📦 GetStocks Relay")
    st.sidebar.markdown("---")

    if os.getenv("DASHBOARD_PASSWORD"):
        if st.sidebar.button("🚪 Logout"):
            st.session_state.password_correct = False
            st.rerun()

    st.sidebar.subheader("Statistics")
    stats = db.get_stats()

    col1, col2 = st.sidebar.columns(2)
    with col1:
        st.metric("Total Downloads", stats["total_downloads"])
    with col2:
        st.metric("Ready Rate", f"{stats['success_rate']:.1f}%")

    if stats["by_channel"]:
        st.sidebar.markdown("**By Channel:**")
        for channel, count in stats["by_channel"].items():
            st.sidebar.text(f"• {channel}: {count}")

    if stats["by_outcome"]:
        st.sidebar.markdown("**By Outcome:**")
        for outcome, count in stats["by_outcome"].items():
            st.sidebar.text(f"• {outcome}: {count}")

    st.sidebar.markdown("---")
    st.sidebar.subheader("Filters")

    channel_filter = st.sidebar.selectbox("Channel", list(CHANNEL_LABELS), index=0)
    outcome_filter = st.sidebar.selectbox("Outcome", list(OUTCOME_LABELS), index=0)
    time_filter = st.sidebar.selectbox(
        "Time Range",
        ["All Time", "Today", "Last 7 Days", "Last 30 Days"],
        index=0
    )

    return {
        "channel": CHANNEL_LABELS[channel_filter],
        "outcome": OUTCOME_LABELS[outcome_filter],
        "time_range": time_filter,
    }


def build_filters(filter_config: dict, now: Optional[datetime] = None) -> dict:
    """Build database filter keys from UI selections."""
    filters = {}

    if filter_config.get("channel"):
        filters["channel"] = filter_config["channel"]

    if filter_config.get("outcome"):
        filters["outcome"] = filter_config["outcome"]

    time_range = filter_config.get("time_range", "All Time")
    if time_range != "All Time":
        now = now or datetime.utcnow()
        if time_range == "Today":
            start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        elif time_range == "Last 7 Days":
            start = now - timedelta(days=7)
        else:  # Last 30 Days
            start = now - timedelta(days=30)
        filters["since"] = start

    return filters


def mask_chat_id(chat_id: int) -> str:
    return f"***{str(chat_id)[-4:]}"


def render_log_card(log: DownloadLog):
    """Render a single download entry as a card."""
    with st.container():
        col1, col2, col3 = st.columns([3, 1, 1])

        with col1:
            title = log.filename or f"{log.provider_slug or 'unknown'} {log.item_id or ''}".strip()
            st.markdown(f"### {title}")
        with col2:
            st.markdown(f"**{OUTCOME_BADGES.get(log.outcome, log.outcome.value)}**")
        with col3:
            st.markdown(f"*{log.timestamp.strftime('%Y-%m-%d %H:%M')}*")

        url_display = log.link[:80] + "..." if len(log.link) > 80 else log.link
        st.markdown(f"🔗 {url_display}")

        if log.error:
            st.error(f"❌ Error: {log.error}")

        col1, col2, col3, col4 = st.columns(4)
        with col1:
            st.caption(f"📡 {log.channel.value}")
        with col2:
            if log.item_type:
                st.caption(f"🗂️ {log.item_type}")
            if log.size:
                st.caption(f"📏 {log.size}")
        with col3:
            if log.processing_time_ms:
                st.caption(f"⏱️ {log.processing_time_ms}ms")
        with col4:
            if log.chat_id:
                st.caption(f"💬 Chat: {mask_chat_id(log.chat_id)}")

        st.markdown("---")


def main():
    """Main dashboard application."""
    if not check_password():
        st.stop()

    st.title("📦 GetStocks Relay Dashboard")
    st.markdown("Downloads relayed through the bot and the web form")
    st.markdown("---")

    db = init_database()
    if not db:
        st.stop()

    filter_config = render_sidebar(db)
    filters = build_filters(filter_config)

    col1, col2 = st.columns([3, 1])

    with col2:
        if st.button("🔄 Refresh"):
            st.rerun()

        limit = st.selectbox("Show", [10, 25, 50, 100], index=1)

    with col1:
        st.subheader("Recent Downloads")

    try:
        logs = db.get_logs(limit=limit, filters=filters)
    except DatabaseError as e:
        st.error(f"Failed to fetch logs: {e}")
        st.stop()

    if not logs:
        st.info("No downloads found matching your criteria.")
        st.markdown(
            "Send links to your Telegram bot or use the web form to see them appear here!"
        )
    else:
        for log in logs:
            render_log_card(log)

    st.markdown("---")
    st.caption(
        "GetStocks Relay Dashboard • "
        f"Database: {db.db_path}"
    )


if __name__ == "__main__":
    main()
