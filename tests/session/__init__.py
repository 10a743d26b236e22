"""Tests for wallet session storage."""
