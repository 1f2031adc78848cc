"""Canned reddit API response bodies for tests."""
