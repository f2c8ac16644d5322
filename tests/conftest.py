"""Global pytest hooks for test categorization."""

import pytest


@pytest.hookimpl
def pytest_collection_modifyitems(config, items):
    """Automatically tag every collected test with the ``api`` marker."""
    for item in items:
        item.add_marker("api")
