"""End-to-end scenario tests for the reliable submission protocol."""
