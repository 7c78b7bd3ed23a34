"""Tests for authentication app."""
