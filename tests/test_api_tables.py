import pytest
from httpx import AsyncClient, ASGITransport

from tally.app import app

SALES = [
    ["Day", "Level", "Quantity"],
    "hline",
    ["Monday", "30", "11"],
    ["Monday", "25", "3"],
    ["Tuesday", "51", "12"],
]


async def _post(path, payload):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.post(path, json=payload)


@pytest.mark.asyncio
async def test_aggregate_endpoint():
    r = await _post("/api/tables/aggregate", {
        "rows": SALES,
        "config": {"cols": "Day mean(Level) sum(Quantity)", "cond": "Level > 30"},
    })
    assert r.status_code == 200
    assert r.json() == {
        "header": ["Day", "mean(Level)", "sum(Quantity)"],
        "rows": [["Tuesday", "51", "12"]],
    }


@pytest.mark.asyncio
async def test_aggregate_endpoint_renders_text():
    r = await _post("/api/tables/aggregate", {
        "rows": SALES,
        "render": True,
        "config": {"cols": "Day;^a count()", "hline": 1},
    })
    body = r.json()
    assert body["rows"] == [["Monday", "2"], "hline", ["Tuesday", "1"]]
    assert body["text"].splitlines()[1] == "|---------+---------|"


@pytest.mark.asyncio
async def test_aggregate_endpoint_rejects_bad_specs():
    r = await _post("/api/tables/aggregate", {"rows": SALES, "config": {"cols": "Day sum(Nope)"}})
    assert r.status_code == 400
    assert "Nope" in r.json()["detail"]


@pytest.mark.asyncio
async def test_aggregate_endpoint_validates_config():
    r = await _post("/api/tables/aggregate", {"rows": SALES, "config": {"cols": "Day", "hline": -2}})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_transpose_endpoint():
    r = await _post("/api/tables/transpose", {"rows": SALES, "config": {"cols": "Day Quantity"}})
    assert r.status_code == 200
    assert r.json() == {
        "header": None,
        "rows": [
            ["Day", "Monday", "Monday", "Tuesday"],
            ["Quantity", "11", "3", "12"],
        ],
    }


@pytest.mark.asyncio
async def test_transpose_endpoint_defaults_to_all_columns():
    r = await _post("/api/tables/transpose", {"rows": [["a", "b"], ["1", "2"]], "has_header": False})
    assert r.json()["rows"] == [["a", "1"], ["b", "2"]]
