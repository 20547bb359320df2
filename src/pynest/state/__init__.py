"""Local representation layer.

This package is the single place where upstream ``put`` snapshots are
merged into the cached device and structure maps.
"""

from pynest.state.store import SIGNAL_HYDRATED, SIGNAL_UPDATE, RepresentationStore

__all__ = ["SIGNAL_HYDRATED", "SIGNAL_UPDATE", "RepresentationStore"]
