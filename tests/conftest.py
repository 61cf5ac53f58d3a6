"""Pytest configuration shared across test modules."""

import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "vmlink_tool.settings")
os.environ.setdefault("DJANGO_SECRET_KEY", "test-secret")
os.environ.setdefault("DJANGO_DEBUG", "true")

# Set Django up after the environment is prepared; pytest-django finds
# the settings already configured in its pytest_configure hook.
import django  # noqa: E402

django.setup()
