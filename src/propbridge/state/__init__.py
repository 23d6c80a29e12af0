"""State layer.

The store here is the single owner of the puzzle state.  Every inbound
channel goes through it, and observers learn about transitions only after
they have been applied.
"""

from propbridge.state.store import StateObserver, StateStore

__all__ = ["StateObserver", "StateStore"]
