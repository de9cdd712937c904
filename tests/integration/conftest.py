"""Configuration for integration tests."""

import pytest


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless ``--integration`` is given.

    Tests also marked ``ci_safe`` always run: they stub GitHub and Redis and
    only exercise the assembled application.
    """
    if config.getoption("--integration", default=False):
        return
    skip_integration = pytest.mark.skip(reason="Need --integration option to run")
    for item in items:
        if "integration" in item.keywords and "ci_safe" not in item.keywords:
            item.add_marker(skip_integration)


def pytest_addoption(parser):
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests against a live Redis (REDIS_URL)",
    )
