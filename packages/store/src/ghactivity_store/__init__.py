"""Snapshot models and storage backends for gh-activity."""
