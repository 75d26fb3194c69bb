"""Root test configuration for focusgate.

Isolates every test from the developer's environment: FOCUSGATE_* variables
are removed and the default config search paths are emptied, so a real
~/.focusgate/config.yaml never leaks into a test.
"""

import pytest

_FOCUSGATE_ENV_VARS = (
    "FOCUSGATE_CONFIG",
    "FOCUSGATE_PROXY_ADDR",
    "FOCUSGATE_WEB_ADDR",
    "FOCUSGATE_BLACKLIST",
    "FOCUSGATE_ORGDIR",
    "FOCUSGATE_BLOCKMODE",
    "FOCUSGATE_HOURS",
)


@pytest.fixture(autouse=True)
def isolate_focusgate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _FOCUSGATE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("focusgate.config.DEFAULT_CONFIG_PATHS", [])


@pytest.fixture
def blacklist_file(tmp_path):
    """Write a blacklist file and return its path as a string."""

    def _write(*patterns: str) -> str:
        path = tmp_path / "blacklist"
        path.write_text("".join(f"{pattern}\n" for pattern in patterns))
        return str(path)

    return _write
