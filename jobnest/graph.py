"""LangGraph workflow for one user's sync run.

    load_user ──(missing)──► END
        │
    resolve_keywords ► load_sources ► sync_sources ► END
"""

from __future__ import annotations

import logging
from typing import TypedDict

from langgraph.graph import END, StateGraph

from jobnest.models.sync import JobSource, SyncLogEntry, SyncStatus, SyncSummary
from jobnest.models.user import User
from jobnest.pipeline.preferences import keywords_for
from jobnest.pipeline.sync import SourceSyncer
from jobnest.settings import SyncSettings
from jobnest.sources.common import SourceClient
from jobnest.storage.accounts import SourceStore, UserStore
from jobnest.storage.catalog import JobCatalog
from jobnest.storage.database import Database
from jobnest.storage.sync_log import SyncLogStore

logger = logging.getLogger(__name__)


# =============================================================================
# Run State
# =============================================================================


class SyncState(TypedDict, total=False):
    """State passed between nodes of a sync run."""

    user_id: int
    user: User | None
    keywords: list[str]
    sources: list[JobSource]
    logs: list[SyncLogEntry]


# =============================================================================
# Graph
# =============================================================================


def build_sync_pipeline(
    users: UserStore,
    sources: SourceStore,
    syncer: SourceSyncer,
    allowed_sources: list[str],
):
    """Build and compile the sync graph around the given stores."""

    def load_user_node(state: SyncState) -> dict:
        user_id = state["user_id"]
        user = users.get(user_id)
        if user is None:
            # Stale queued work for a deleted user; nothing to record.
            logger.info("User %d not found, skipping sync", user_id)
        return {"user": user}

    def resolve_keywords_node(state: SyncState) -> dict:
        keywords = keywords_for(state["user"].preferences)
        logger.info("Syncing user %d with keywords %s", state["user_id"], keywords)
        return {"keywords": keywords}

    def load_sources_node(state: SyncState) -> dict:
        enabled = sources.list_enabled(allowed_sources)
        logger.info("Enabled sources: %s", [s.key for s in enabled] or "none")
        return {"sources": enabled}

    def sync_sources_node(state: SyncState) -> dict:
        logs = list(state.get("logs", []))
        for source in state.get("sources", []):
            logs.append(syncer.sync_source(source, state["user"], state["keywords"]))
        return {"logs": logs}

    def route_after_user(state: SyncState) -> str:
        return "continue" if state.get("user") is not None else "stop"

    graph = StateGraph(SyncState)

    graph.add_node("load_user", load_user_node)
    graph.add_node("resolve_keywords", resolve_keywords_node)
    graph.add_node("load_sources", load_sources_node)
    graph.add_node("sync_sources", sync_sources_node)

    graph.set_entry_point("load_user")
    graph.add_conditional_edges(
        "load_user",
        route_after_user,
        {"continue": "resolve_keywords", "stop": END},
    )
    graph.add_edge("resolve_keywords", "load_sources")
    graph.add_edge("load_sources", "sync_sources")
    graph.add_edge("sync_sources", END)

    return graph.compile()


# =============================================================================
# Orchestrator
# =============================================================================


class SyncOrchestrator:
    """Entry point for syncing a user's job feed from every enabled source."""

    def __init__(
        self,
        db: Database,
        clients: dict[str, SourceClient],
        settings: SyncSettings | None = None,
    ) -> None:
        self.settings = settings or SyncSettings()
        self.users = UserStore(db)
        self.sources = SourceStore(db)
        self.catalog = JobCatalog(db)
        self.sync_logs = SyncLogStore(db)
        self.syncer = SourceSyncer(self.catalog, self.sync_logs, self.sources, clients, self.settings)
        self._pipeline = build_sync_pipeline(
            self.users, self.sources, self.syncer, self.settings.allowed_sources
        )

    def run_sync(self, user_id: int) -> list[SyncLogEntry]:
        """Sync every enabled, allowed source for the user.

        Returns the log entries written, one per source. A missing user is a
        no-op and yields no entries.
        """
        result = self._pipeline.invoke({"user_id": user_id, "logs": []})
        return result.get("logs", [])

    def sync_now(self, user_id: int) -> SyncSummary:
        """Run a sync and summarize it for the user who asked for it."""
        logs = self.run_sync(user_id)
        user = self.users.get(user_id)
        if user is None:
            return SyncSummary(synced=False, message="User not found.")

        needle = user.preferences.preferred_location.split(",")[0].strip()
        matched = self.catalog.count_user_jobs(user_id, needle)
        keys = {s.id: s.key for s in self.sources.list_all()}

        return SyncSummary(
            fetched=sum(log.jobs_fetched for log in logs),
            created=sum(log.jobs_created for log in logs),
            updated=sum(log.jobs_updated for log in logs),
            failed_sources=[keys.get(log.source_id, str(log.source_id)) for log in logs
                            if log.status == SyncStatus.FAILED],
            matched_jobs=matched,
            message=(
                "Auto sync completed."
                if matched > 0
                else "Auto sync completed, but no jobs matched your current location filters."
            ),
        )
