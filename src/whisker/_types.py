"""Shared type definitions for whisker."""

from collections.abc import Callable
from typing import Literal

# SSE client identifier
type ClientID = str

# Subscriber callback for change notifications (no payload)
type ChangeHandler = Callable[[], None]

# Probe used by BindManager to claim a port; raises OSError on failure
type BindProbe = Callable[[str, int], None]

# Watcher state machine
type WatcherState = Literal["idle", "rendering"]

# BindManager state machine
type BindPhase = Literal["idle", "binding", "bound", "failed"]
