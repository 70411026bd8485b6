"""Data access layer for studies, weekly effort logs, assignments and cached snapshots."""
