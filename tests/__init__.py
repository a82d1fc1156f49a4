"""
Tests Package

This package contains all test files for the Daily Mafia bot:
- Role catalog, win conditions and night resolution
- Phase scheduling, night actions and voting against a real SQLite store
- Deadline sweeps, notifications and configuration

Run tests with: pytest tests/
"""
