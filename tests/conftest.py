"""
Pytest configuration for sharepointclient tests.
"""

import pytest


def pytest_addoption(parser):
    """Add command line option to enable integration tests."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests against the SharePoint site in SHAREPOINTCLIENT_TEST_SITE_URL",
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: needs a live SharePoint site")


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --run-integration is passed."""
    if config.getoption("--run-integration"):
        return

    skip_integration = pytest.mark.skip(reason="need --run-integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)
