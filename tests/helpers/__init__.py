"""
Test helper utilities for nocturne testing.

This module provides reusable utilities for:
- Building signals, sessions, batches and daily reports
- An in-memory DayRepository that records saves
"""
