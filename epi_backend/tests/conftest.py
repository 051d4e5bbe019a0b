"""
Fixtures compartidas: base SQLite temporal, reloj fijo y casos de uso
construidos por el contenedor de dependencias.
"""
from datetime import datetime

import pytest

from epi_backend.app.application.use_cases.conclude_note import ConcludeNoteRequest
from epi_backend.app.application.use_cases.manage_draft_note import AddNoteItemRequest, CreateNoteRequest
from epi_backend.app.core.clock import FixedClock
from epi_backend.app.domain.enums import NoteKind, StockStatus
from epi_backend.app.infrastructure.dependency_container import container
from epi_backend.infrastructure.database.session import build_engine, build_session_factory, create_tables

ACTOR = "almoxarife.01"
WAREHOUSE = "ALM-CENTRAL"
OTHER_WAREHOUSE = "ALM-OBRA-01"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("ALLOW_NEGATIVE_STOCK", "ALLOW_FORCED_ADJUSTMENTS", "EXPIRY_WARNING_DAYS"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def clock():
    return FixedClock(datetime(2025, 3, 10, 8, 0, 0))


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'epi_test.db'}", echo=False)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def uow(session_factory):
    return container.get_unit_of_work(session_factory)


@pytest.fixture
def drafts(session_factory, clock):
    return container.get_case_use_manage_draft_note(session_factory, clock)


@pytest.fixture
def conclude(session_factory, clock):
    return container.get_case_use_conclude_note(session_factory, clock)


@pytest.fixture
def cancel(session_factory, clock):
    return container.get_case_use_cancel_note(session_factory, clock)


@pytest.fixture
def adjustments(session_factory, clock):
    return container.get_case_use_direct_adjustment(session_factory, clock)


@pytest.fixture
def queries(session_factory):
    return container.get_case_use_stock_queries(session_factory)


@pytest.fixture
def catalog(session_factory, clock):
    return container.get_case_use_catalog(session_factory, clock)


@pytest.fixture
def entregas(session_factory, clock):
    return container.get_case_use_issue_entrega(session_factory, clock)


@pytest.fixture
def returns(session_factory, clock):
    return container.get_case_use_process_return(session_factory, clock)


@pytest.fixture
async def helmet(catalog):
    return await catalog.create_item_type(name="Capacete de segurança", ca_number="CA-31469", lifespan_days=365)


@pytest.fixture
async def gloves(catalog):
    return await catalog.create_item_type(name="Luva de vaqueta", ca_number="CA-12345", lifespan_days=30)


@pytest.fixture
async def ficha(catalog):
    return await catalog.create_ficha("COL-0001")


@pytest.fixture
def set_flag(uow):
    async def _set(key, value):
        async with uow:
            await uow.config.set_flag(key, value)
            await uow.commit()
    return _set


@pytest.fixture
def balance(uow):
    async def _balance(warehouse_id, item_type_id, status=StockStatus.AVAILABLE):
        async with uow:
            found = await uow.stock.get(warehouse_id, item_type_id, status)
        return found.quantity if found else 0
    return _balance


@pytest.fixture
def make_note(drafts):
    async def _make(kind, items, origin=None, destination=None, notes=None):
        note = await drafts.create_note(CreateNoteRequest(
            kind=kind,
            actor_user_id=ACTOR,
            origin_warehouse_id=origin,
            destination_warehouse_id=destination,
            notes=notes,
        ))
        for item_type_id, quantity, *direction in items:
            kwargs = {"direction": direction[0]} if direction else {}
            note = await drafts.add_item(AddNoteItemRequest(
                note_id=note.id,
                item_type_id=item_type_id,
                quantity=quantity,
                actor_user_id=ACTOR,
                **kwargs
            ))
        return note
    return _make


@pytest.fixture
def seed_stock(make_note, conclude):
    """Cargar saldo disponible a través de una nota de entrada concluida"""
    async def _seed(item_type_id, quantity, warehouse_id=WAREHOUSE):
        note = await make_note(NoteKind.ENTRY, [(item_type_id, quantity)], destination=warehouse_id)
        response = await conclude.execute(ConcludeNoteRequest(note_id=note.id, actor_user_id=ACTOR))
        return response
    return _seed
