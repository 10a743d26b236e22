"""Tests for provider fallback and composite operations."""
