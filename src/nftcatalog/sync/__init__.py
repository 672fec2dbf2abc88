"""Catalog synchronization state machine."""

from nftcatalog.sync.controller import SyncController, SyncState

__all__ = ["SyncController", "SyncState"]
