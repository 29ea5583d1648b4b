from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from bookmark_digest.app.dependencies import reset_cached_dependencies
from bookmark_digest.app.main import create_app


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:  # pyright: ignore[reportUnusedFunction]
    monkeypatch.delenv("BOOKMARK_DIGEST_SUMMARY_REWRITE_ENABLED", raising=False)
    monkeypatch.delenv("BOOKMARK_DIGEST_OPENAI_API_KEY", raising=False)
    monkeypatch.setenv("BOOKMARK_DIGEST_TELEMETRY_SINK", "none")


@pytest.fixture
def client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    data_dir = tmp_path / "runtime-data"
    data_dir.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("BOOKMARK_DIGEST_DATA_DIR", str(data_dir))
    reset_cached_dependencies()

    app = create_app()
    with TestClient(app) as test_client:
        yield test_client

    reset_cached_dependencies()
