"""Tests for the onchain CLI."""
