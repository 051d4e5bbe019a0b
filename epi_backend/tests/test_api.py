"""
Flujos completos por HTTP contra una base SQLite temporal.
"""
import asyncio
from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import NullPool

from epi_backend.api.dependencies import get_clock, get_session_factory
from epi_backend.app.core.clock import FixedClock
from epi_backend.infrastructure.database.session import build_engine, build_session_factory, create_tables
from epi_backend.main import app

HEADERS = {"X-User-Id": "almoxarife.01"}


@pytest.fixture
def client(tmp_path):
    # NullPool: cada request del TestClient corre en su propio event loop
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}", echo=False, poolclass=NullPool)
    asyncio.run(create_tables(engine))
    session_factory = build_session_factory(engine)
    clock = FixedClock(datetime(2025, 3, 10, 8, 0, 0))

    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


def _create_item_type(client, name="Capacete", ca_number="CA-31469"):
    response = client.post("/api/catalog/item-types",
                           json={"name": name, "ca_number": ca_number, "lifespan_days": 365})
    assert response.status_code == 201
    return response.json()["data"]["id"]


def _receive(client, item_type_id, quantity, warehouse_id="ALM-CENTRAL"):
    note = client.post("/api/notes", json={"kind": "ENTRY", "destination_warehouse_id": warehouse_id},
                       headers=HEADERS).json()["data"]
    response = client.post(f"/api/notes/{note['id']}/items",
                           json={"item_type_id": item_type_id, "quantity": quantity}, headers=HEADERS)
    assert response.status_code == 201
    response = client.post(f"/api/notes/{note['id']}/conclude", headers=HEADERS)
    assert response.status_code == 200
    return response.json()["data"]


def test_note_flow(client):
    item_type_id = _create_item_type(client)

    concluded = _receive(client, item_type_id, 10)

    assert concluded["note"]["status"] == "CONCLUDED"
    assert concluded["note"]["number"] == "ENT-2025-000001"
    assert concluded["ledger_entries"][0]["balance_after"] == 10

    balances = client.get("/api/stock/balances", params={"warehouse_id": "ALM-CENTRAL"}).json()
    assert [b["quantity"] for b in balances["data"]["balances"]] == [10]

    note_id = concluded["note"]["id"]
    check = client.get(f"/api/notes/{note_id}/cancellation-check").json()["data"]
    assert check["can_cancel"] is True

    cancelled = client.post(f"/api/notes/{note_id}/cancel", json={"reason": "Duplicada"}, headers=HEADERS)
    assert cancelled.status_code == 200
    assert cancelled.json()["data"]["reversals"][0]["kind"] == "REVERSAL"

    kardex = client.get("/api/stock/kardex", params={"warehouse_id": "ALM-CENTRAL",
                                                     "item_type_id": item_type_id}).json()
    assert kardex["data"]["summary"]["final_balance"] == 0


def test_business_errors_are_mapped(client):
    item_type_id = _create_item_type(client)
    concluded = _receive(client, item_type_id, 1)

    again = client.post(f"/api/notes/{concluded['note']['id']}/conclude", headers=HEADERS)
    assert again.status_code == 400
    assert again.json()["details"]["rule"] == "note_not_draft"

    missing = client.get("/api/notes/999")
    assert missing.status_code == 404
    assert missing.json()["error"] == "NOT_FOUND"

    disposal = client.post("/api/notes", json={"kind": "DISPOSAL", "origin_warehouse_id": "ALM-CENTRAL"},
                           headers=HEADERS).json()["data"]
    client.post(f"/api/notes/{disposal['id']}/items", json={"item_type_id": item_type_id, "quantity": 5},
                headers=HEADERS)
    insufficient = client.post(f"/api/notes/{disposal['id']}/conclude", headers=HEADERS)
    assert insufficient.status_code == 400
    assert insufficient.json()["details"]["deficit"] == 4


def test_actor_header_is_required(client):
    response = client.post("/api/notes", json={"kind": "ENTRY", "destination_warehouse_id": "ALM-CENTRAL"})
    assert response.status_code == 422

    blank = client.post("/api/notes", json={"kind": "ENTRY", "destination_warehouse_id": "ALM-CENTRAL"},
                        headers={"X-User-Id": "  "})
    assert blank.status_code == 422
    assert blank.json()["details"]["field"] == "X-User-Id"


def test_direct_adjustment_flow(client):
    item_type_id = _create_item_type(client)
    _receive(client, item_type_id, 10)
    payload = {"warehouse_id": "ALM-CENTRAL", "item_type_id": item_type_id,
               "new_quantity": 7, "reason": "Inventario mensual"}

    disabled = client.post("/api/stock/adjustments", json=payload, headers=HEADERS)
    assert disabled.status_code == 400

    enabled = client.put("/api/config", json={"key": "PERMITIR_AJUSTES_FORCADOS", "value": "true"},
                         headers=HEADERS)
    assert enabled.status_code == 200

    adjusted = client.post("/api/stock/adjustments", json=payload, headers=HEADERS)
    assert adjusted.status_code == 201
    assert adjusted.json()["data"]["difference"] == -3

    unknown = client.put("/api/config", json={"key": "NO_EXISTE", "value": "1"}, headers=HEADERS)
    assert unknown.status_code == 422

    bad_days = client.put("/api/config", json={"key": "DIAS_AVISO_VENCIMENTO", "value": "muchos"},
                          headers=HEADERS)
    assert bad_days.status_code == 422
    assert bad_days.json()["details"]["field"] == "value"


def test_entrega_flow(client):
    item_type_id = _create_item_type(client)
    _receive(client, item_type_id, 3)
    stock_id = client.get("/api/stock/balances").json()["data"]["balances"][0]["id"]
    ficha = client.post("/api/catalog/fichas", json={"employee_id": "COL-0001"}).json()["data"]

    issued = client.post("/api/entregas", json={"ficha_epi_id": ficha["id"],
                                                "origin_stock_item_ids": [stock_id, stock_id]},
                         headers=HEADERS)
    assert issued.status_code == 201
    entrega = issued.json()["data"]
    assert entrega["status"] == "PENDING_SIGNATURE"
    assert len(entrega["ledger_entry_ids"]) == 2

    signed = client.post(f"/api/entregas/{entrega['id']}/sign", headers=HEADERS).json()["data"]
    assert signed["status"] == "ACTIVE"

    returned = client.post(f"/api/entregas/{entrega['id']}/returns",
                           json={"items": [{"entrega_item_id": entrega["items"][0]["id"], "condition": "GOOD"}]},
                           headers=HEADERS)
    assert returned.status_code == 200
    assert returned.json()["data"]["entrega"]["status"] == "PARTIALLY_RETURNED"

    possession = client.get("/api/entregas/possession/COL-0001").json()["data"]["possession"]
    assert [(p["item_type_id"], p["count"]) for p in possession] == [(item_type_id, 1)]

    quarantine = client.get("/api/stock/balances", params={"status": "QUARANTINE"}).json()["data"]["balances"]
    assert [b["quantity"] for b in quarantine] == [1]

    cancelled = client.post(
        f"/api/entregas/{entrega['id']}/items/{entrega['items'][0]['id']}/cancel-return",
        json={"reason": "Registrada por error"}, headers=HEADERS
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["data"]["entrega"]["status"] == "ACTIVE"
    assert len(cancelled.json()["data"]["reversal_ids"]) == 1

    again = client.post(f"/api/entregas/{entrega['id']}/items/{entrega['items'][0]['id']}/cancel-return",
                        headers=HEADERS)
    assert again.status_code == 400
    assert again.json()["details"]["rule"] == "item_not_returned"
