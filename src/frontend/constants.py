"""Shared constants for the Textual UI."""

from __future__ import annotations

NEXTIVA_BLUE = "#3498DB"
BUTTON_IDLE = "Collect missed calls"
BUTTON_RUNNING = "Stop collecting"
BUTTON_STOPPING = "Stopping..."
