"""E2E test fixtures for Playwright.

The pytest-playwright plugin automatically provides:
  - page: A new browser page for each test
  - context: A new browser context for each test
  - browser: A browser instance (session scope)

Override base_url with --base-url on the CLI:
    pytest -m e2e --base-url http://localhost:8000
"""

from __future__ import annotations

import subprocess
from typing import Generator
from uuid import uuid4

import pytest
from playwright.sync_api import APIRequestContext, Playwright


@pytest.fixture(scope="session")
def base_url(request) -> str:
    """Provide base URL for Playwright tests.

    Uses --base-url CLI value if given, otherwise defaults to the
    local Django dev server.
    """
    return request.config.getoption("base_url") or "http://localhost:8000"


@pytest.fixture(autouse=True)
def _use_db() -> None:
    """E2E tests hit the server over HTTP and never touch the test database."""


@pytest.fixture(scope="session")
def api_request_context(
    playwright: Playwright, base_url: str
) -> Generator[APIRequestContext, None, None]:
    """Playwright API context for direct HTTP calls."""
    context = playwright.request.new_context(base_url=base_url)
    yield context
    context.dispose()


def _run_manage_py(command: str) -> None:
    subprocess.run(
        ["python", "src/manage.py", "shell", "-c", command],
        check=True,
        capture_output=True,
        text=True,
    )


def _create_staff_user(username: str, password: str) -> None:
    command = (
        "from django.contrib.auth import get_user_model; "
        "User = get_user_model(); "
        f"User.objects.filter(username={username!r}).delete(); "
        f"User.objects.create_user(username={username!r}, password={password!r}, "
        "is_staff=True)"
    )
    _run_manage_py(command)


def _delete_user(username: str) -> None:
    command = (
        "from django.contrib.auth import get_user_model; "
        "User = get_user_model(); "
        f"User.objects.filter(username={username!r}).delete()"
    )
    _run_manage_py(command)


@pytest.fixture()
def auth_credentials() -> Generator[tuple[str, str], None, None]:
    """Create a throwaway staff account and yield its credentials."""
    username = f"e2eadmin_{uuid4().hex[:8]}"
    password = "E2e-Kardemumma-91"
    _create_staff_user(username, password)
    try:
        yield username, password
    finally:
        _delete_user(username)


@pytest.fixture()
def auth_token(api_request_context, auth_credentials) -> str:
    """Log in through the admin session endpoint."""
    username, password = auth_credentials
    response = api_request_context.post(
        "/api/v1/auth/login/",
        data={"username": username, "password": password},
    )
    assert response.status == 200
    data = response.json()
    return data["token"]
