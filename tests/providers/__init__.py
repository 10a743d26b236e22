"""Tests for provider payload normalization."""
