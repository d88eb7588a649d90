from dataclasses import fields

import pytest

from shared.settings import ENV_PREFIX, Settings


@pytest.fixture
def clean_env(monkeypatch):
    # setenv + delenv so anything load_dotenv adds is removed again on teardown
    for f in fields(Settings):
        name = f"{ENV_PREFIX}{f.name.upper()}"
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch
