"""
Loading pipeline for ogremax.

Includes the dependency tracker, fetchers and the asynchronous AssetLoader.
"""

from .tracker import DependencyTracker, ItemState, AggregateState
from .fetch import FileFetcher
from .loader import (
    AssetLoader,
    LoadSession,
    LoaderState,
    load_asset,
    resolve_reference,
)

__all__ = [
    # Tracker
    "DependencyTracker",
    "ItemState",
    "AggregateState",
    # Fetchers
    "FileFetcher",
    # Loader
    "AssetLoader",
    "LoadSession",
    "LoaderState",
    "load_asset",
    "resolve_reference",
]
