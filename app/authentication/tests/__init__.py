"""
Tests for authentication app.

This package contains test modules for:
- test_models.py: User and Profile model tests
- test_managers.py: UserManager creation rules
- test_signals.py: Profile auto-creation

Usage:
    pytest authentication/tests/
    pytest authentication/tests/test_models.py
"""
