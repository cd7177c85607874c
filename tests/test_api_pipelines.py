import json

import pytest
from httpx import AsyncClient, ASGITransport

from tally.app import app

SALES = [
    ["Day", "Level", "Quantity"],
    ["Monday", "30", "11"],
    ["Monday", "25", "3"],
    ["Tuesday", "51", "12"],
]

PAYLOAD = {
    "nodes": [
        {"id": "src", "type": "table_source", "config": {"rows": SALES}},
        {"id": "agg", "type": "aggregate", "config": {"cols": "Day mean(Level) sum(Quantity)"}},
        {"id": "txt", "type": "org_text", "config": {}},
    ],
    "edges": [
        {"source": "src", "target": "agg"},
        {"source": "agg", "target": "txt"},
    ],
}


@pytest.mark.asyncio
async def test_list_node_types():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.get("/api/nodes")
    assert r.status_code == 200
    ids = [n["id"] for n in r.json()]
    assert "aggregate" in ids
    assert "transpose" in ids
    assert "grid" in ids


@pytest.mark.asyncio
async def test_run_pipeline():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.post("/api/pipelines/run", json=PAYLOAD)
    assert r.status_code == 200
    data = r.json()
    # live Table objects are not serialized
    assert "table" not in data["src"]
    assert data["agg"]["rows"] == 2
    assert data["txt"]["text"].splitlines()[2] == "| Monday  | 27.5        | 14            |"


@pytest.mark.asyncio
async def test_run_pipeline_reports_node_errors():
    payload = json.loads(json.dumps(PAYLOAD))
    payload["nodes"][1]["config"]["cols"] = "Day sum(Nope)"
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.post("/api/pipelines/run", json=payload)
    assert r.status_code == 200
    assert "error" in r.json()["agg"]
    assert "txt" not in r.json()


@pytest.mark.asyncio
async def test_run_stream_emits_events():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.post("/api/pipelines/run-stream", json=PAYLOAD)
    assert r.status_code == 200
    events = [json.loads(line[len("data: "):])
              for line in r.text.splitlines() if line.startswith("data: ")]
    types = [e["type"] for e in events]
    assert types == ["node_start", "node_done"] * 3 + ["complete"]
    assert events[-1]["results"]["agg"]["columns"] == ["Day", "mean(Level)", "sum(Quantity)"]


@pytest.mark.asyncio
async def test_node_types_by_category():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.get("/api/nodes", params={"category": "compute"})
    assert sorted(n["id"] for n in r.json()) == ["aggregate", "transpose"]


@pytest.mark.asyncio
async def test_single_node_type():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        found = await client.get("/api/nodes/aggregate")
        missing = await client.get("/api/nodes/nope")
    assert found.json()["category"] == "compute"
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_cyclic_pipeline_is_rejected():
    payload = {
        "nodes": [
            {"id": "a", "type": "transpose"},
            {"id": "b", "type": "grid"},
        ],
        "edges": [{"source": "a", "target": "b"}, {"source": "b", "target": "a"}],
    }
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.post("/api/pipelines/run", json=payload)
    assert r.status_code == 400
    assert "cycle" in r.json()["detail"]
