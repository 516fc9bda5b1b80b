"""Builds the source clients from settings."""

from __future__ import annotations

import httpx

from jobnest.settings import ARBEITNOW, JSEARCH, REMOTIVE, Settings
from jobnest.sources.arbeitnow import ArbeitnowClient
from jobnest.sources.common import SourceClient
from jobnest.sources.jsearch import JSearchClient
from jobnest.sources.remotive import RemotiveClient

CLIENT_CLASSES: dict[str, type[SourceClient]] = {
    ARBEITNOW: ArbeitnowClient,
    REMOTIVE: RemotiveClient,
    JSEARCH: JSearchClient,
}


def build_clients(settings: Settings, http: httpx.Client | None = None) -> dict[str, SourceClient]:
    """Instantiate one client per configured provider, keyed by source key."""
    clients: dict[str, SourceClient] = {}
    for key, cls in CLIENT_CLASSES.items():
        if key in settings.providers:
            clients[key] = cls(settings.provider(key), http=http)
    return clients
