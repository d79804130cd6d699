"""
FILE: tests/conftest.py
Shared fixtures for engine, service and API tests.
"""

from pathlib import Path

import pytest

from src.api.dependencies import reset_advisory_services_for_tests

_ENVIRONMENT_KEYS = (
    "ASSESSMENT_STORE_BACKEND",
    "ASSESSMENT_POSTGRES_DSN",
    "BEHAVIORAL_ANALYSIS_URL",
    "ALLOCATION_GENERATOR_URL",
    "EXTERNAL_MODEL_VARIANT",
    "EXTERNAL_MAX_ATTEMPTS",
    "EXTERNAL_BACKOFF_SECONDS",
    "EXTERNAL_TIMEOUT_SECONDS",
    "SECURITY_CATALOG_JSON",
    "QUESTIONNAIRE_CATALOG_JSON",
    "APP_PERSISTENCE_PROFILE",
    "PORTFOLIO_API_ENABLED",
)


def _has_marker(item: pytest.Item, name: str) -> bool:
    return item.get_closest_marker(name) is not None


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        if _has_marker(item, "unit") or _has_marker(item, "integration"):
            continue

        path = Path(str(item.fspath)).as_posix().lower()
        if "/tests/integration/" in path or "_integration.py" in path:
            item.add_marker(pytest.mark.integration)
            continue
        item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def isolated_runtime_environment(monkeypatch: pytest.MonkeyPatch):
    """Each test starts from default configuration and fresh service singletons."""

    for key in _ENVIRONMENT_KEYS:
        monkeypatch.delenv(key, raising=False)
    reset_advisory_services_for_tests()
    yield
    reset_advisory_services_for_tests()
