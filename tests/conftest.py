import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture(autouse=True)
def disable_sleep(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("time.sleep", lambda *_args, **_kwargs: None)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "LOREKEEPER_DATABASE_URL",
        "LOREKEEPER_STATE_DIR",
        "LOREKEEPER_CATALOG_URL",
        "LOREKEEPER_CATALOG_PATH",
        "LOREKEEPER_ACTIVE_POLICY",
        "LOREKEEPER_AUTOPLAY",
        "LOREKEEPER_RNG_SEED",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_http_circuits():
    from lorekeeper.infrastructure.resilient_http import reset_circuit_breakers

    reset_circuit_breakers()
    yield
    reset_circuit_breakers()
