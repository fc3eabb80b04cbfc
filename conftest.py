"""
Root pytest configuration for the Django project.

Settings come from DJANGO_SETTINGS_MODULE in pyproject.toml; the app
directory is put on sys.path by pytest's ``pythonpath`` option.
App-specific fixtures are defined in each app's tests/conftest.py.
"""

import os

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")
