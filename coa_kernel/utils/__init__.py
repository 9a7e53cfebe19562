"""Shared utilities for the COA kernel."""
