"""Tests for the command-line layer."""
