"""Models, persistence and migrations shared by Pulse services."""
