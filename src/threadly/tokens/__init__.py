"""Slack credential lifecycle: validity checks, refresh, migration and sweep."""
