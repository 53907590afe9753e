"""Manifest resolution, diffing, change-log extraction and persistence."""
