"""Tests for address and formatting helpers."""
