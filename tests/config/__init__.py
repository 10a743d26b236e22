"""Tests for credentials, capabilities and config files."""
