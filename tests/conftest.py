import os

import pytest

from rollout_core.config import get_config


@pytest.fixture(autouse=True)
def _default_env(monkeypatch: pytest.MonkeyPatch, tmp_path_factory) -> None:
    def set_default(name: str, value: str) -> None:
        if not os.getenv(name):
            monkeypatch.setenv(name, value)

    set_default("ENV", "test")
    set_default("LOG_LEVEL", "INFO")
    set_default("STORAGE_BACKEND", "local")
    set_default(
        "LOCAL_STORAGE_ROOT",
        tmp_path_factory.mktemp("artifacts").as_posix(),
    )
    set_default("PRESIGN_SECRET", "test-secret")
    set_default("PRESIGN_BASE_URL", "http://artifacts.test/download")
    get_config.cache_clear()
    yield
    get_config.cache_clear()
