"""Unit tests for the harness; no server and no network access."""
