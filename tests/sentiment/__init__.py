"""Tests for Polymarket sentiment scoring."""
