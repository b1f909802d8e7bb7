from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest
import requests

from parkfinder.models import Place

API_BASE = "http://testserver/api/v1"


def fake_response(payload: Any, status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = payload
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status} Error")
    else:
        resp.raise_for_status.return_value = None
    return resp


@pytest.fixture
def fed_square() -> Place:
    return Place(id="g-fedsq", name="Federation Square", lat=-37.817979, lng=144.969093)


@pytest.fixture
def caulfield() -> Place:
    return Place(id="g-caulfield", name="Monash Caulfield Campus", lat=-37.8770, lng=145.0443)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("PARKFINDER_USE_MOCK", "PARKFINDER_API_BASE", "PARKFINDER_FIXTURE_PATH"):
        monkeypatch.delenv(name, raising=False)
