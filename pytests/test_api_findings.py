from __future__ import annotations

from datetime import datetime
from typing import Any

import pytest

from app import create_app
from models.prod_findings import ProdFinding
from pytests.common import add_dicts
from utils.object_map_store import get_map_ids, insert_names


def _prod(obj: str, name: str, risk: str | None, rank: int | None, **extra: Any) -> dict:
    row = {
        "normalized_object": obj,
        "finding_name": name,
        "finding_category": "Config",
        "risk_level": risk,
        "priority_rank": rank,
        "finding_object_id": rank,
        "fixed": "N",
    }
    row.update(extra)
    return row


@pytest.fixture()
def client(db_session):
    insert_names(db_session, {"SRV01", "SQL02"})
    db_session.commit()
    ids = get_map_ids(db_session)

    rows = [
        _prod("SRV01", "Unrated", None, None),
        _prod("SRV01", "Weak password", "High", 2),
        _prod("SQL02", "Weak password", "High", 3, fixed="Y", end_date=datetime(2024, 2, 1, 13, 5)),
        _prod("SRV01", "Open port", "Critical", 1),
    ]
    for r in rows:
        r["object_map_id"] = ids[r["normalized_object"]]
    add_dicts(db_session, ProdFinding, rows)

    app = create_app()
    app.config.update(TESTING=True)
    with app.test_client() as c:
        yield c


def _assert_envelope(payload: dict[str, Any], *, ok: bool) -> None:
    assert set(payload) == {"ok", "data", "error", "meta"}
    assert payload["ok"] is ok
    if ok:
        assert payload["error"] is None
    else:
        assert payload["data"] is None
        assert payload["error"]["message"]


def test_health(client) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    payload = resp.get_json()
    _assert_envelope(payload, ok=True)
    assert payload["data"] == {"status": "ok"}


def test_findings_are_in_priority_order_with_unranked_last(client) -> None:
    resp = client.get("/api/v1/findings")
    assert resp.status_code == 200
    payload = resp.get_json()
    _assert_envelope(payload, ok=True)

    results = payload["data"]["results"]
    assert payload["data"]["count"] == 4
    assert payload["meta"]["row_count"] == 4
    assert [r["priority_rank"] for r in results] == [1, 2, 3, None]
    assert results[2]["end_date"] == "2024-02-01"
    assert results[2]["fixed"] == "Y"


@pytest.mark.parametrize(
    "query,expected",
    [
        ("risk_level=high", [2, 3]),
        ("object=srv01", [1, 2, None]),
        ("fixed=y", [3]),
        ("fixed=N&risk_level=High", [2]),
        ("limit=2", [1, 2]),
    ],
)
def test_findings_filters(client, query, expected) -> None:
    resp = client.get(f"/api/v1/findings?{query}")
    assert resp.status_code == 200
    assert [r["priority_rank"] for r in resp.get_json()["data"]["results"]] == expected


@pytest.mark.parametrize(
    "param,value", [("limit", "0"), ("limit", "501"), ("limit", "abc"), ("fixed", "maybe")]
)
def test_findings_bad_params(client, param, value) -> None:
    resp = client.get(f"/api/v1/findings?{param}={value}")
    assert resp.status_code == 400
    payload = resp.get_json()
    _assert_envelope(payload, ok=False)
    assert payload["error"]["code"] == "bad_request"
    assert payload["error"]["details"] == {"param": param, "value": value}


def test_findings_summary(client) -> None:
    resp = client.get("/api/v1/findings/summary")
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["total"] == 4
    assert data["open"] == 3
    assert data["fixed"] == 1
    assert data["unranked"] == 1
    assert data["by_risk_level"] == {"Critical": 1, "High": 2, "(none)": 1}


def test_objects_lists_identity_map(client) -> None:
    resp = client.get("/api/v1/objects")
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert [o["object_name"] for o in data["results"]] == ["SQL02", "SRV01", "Unknown"]
    assert data["count"] == 3


def test_unknown_route_returns_json_404(client) -> None:
    resp = client.get("/api/v1/nope")
    assert resp.status_code == 404
    _assert_envelope(resp.get_json(), ok=False)
