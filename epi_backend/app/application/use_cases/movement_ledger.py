"""
Servicio de aplicación: kardex de movimientos.

Único punto de creación de movimientos. Calcula el saldo corrido a partir
del último movimiento de la misma clave (almacén, tipo EPI, situación) y
garantiza que cada movimiento tenga como máximo un estorno.

Antes de leer el saldo corrido bloquea la fila de saldo de la clave: dos
transacciones que escriben la misma clave quedan serializadas y nunca
parten del mismo saldo anterior.
"""
from typing import Optional

from ....app.core.clock import Clock
from ....app.core.exceptions import NotFoundException
from ....app.domain.entities.movement_entry import MovementLedgerEntry
from ....app.domain.enums import MovementKind, StockStatus
from ....app.domain.exceptions import EntryNotReversibleError
from ....app.application.ports.movement_repository import MovementRepository
from ....app.application.ports.stock_repository import StockRepository


class MovementLedgerService:
    """
    Crea movimientos y estornos dentro de la transacción del llamador.

    No confirma nada: el caso de uso que lo usa es dueño del Unit of Work.
    """

    def __init__(self, movement_repository: MovementRepository,
                 stock_repository: StockRepository, clock: Clock):
        self.movement_repo = movement_repository
        self.stock_repo = stock_repository
        self.clock = clock

    async def create_entry(
        self,
        kind: MovementKind,
        warehouse_id: str,
        item_type_id: int,
        quantity: int,
        actor_user_id: str,
        origin_note_id: Optional[int] = None,
        notes: Optional[str] = None,
        direction: Optional[int] = None,
        stock_status: StockStatus = StockStatus.AVAILABLE,
        entrega_id: Optional[int] = None,
    ) -> MovementLedgerEntry:
        """
        Registrar un movimiento nuevo.

        Args:
            kind: Tipo de movimiento (no REVERSAL)
            quantity: Cantidad positiva
            direction: Sentido explícito (solo ADJUSTMENT admite -1)
            stock_status: Situación del saldo afectado

        Returns:
            MovementLedgerEntry: Movimiento persistido

        Raises:
            ValidationException: Si la cantidad o los identificadores son inválidos
        """
        await self.stock_repo.lock_key(warehouse_id, item_type_id, stock_status)
        balance_before = await self.movement_repo.latest_balance(
            warehouse_id, item_type_id, stock_status
        )
        entry = MovementLedgerEntry.create(
            kind=kind,
            warehouse_id=warehouse_id,
            item_type_id=item_type_id,
            quantity=quantity,
            balance_before=balance_before,
            actor_user_id=actor_user_id,
            created_at=self.clock.now(),
            direction=direction,
            stock_status=stock_status,
            origin_note_id=origin_note_id,
            entrega_id=entrega_id,
            notes=notes,
        )
        return await self.movement_repo.add(entry)

    async def create_reversal(
        self,
        original_entry_id: int,
        actor_user_id: str,
        notes: Optional[str] = None,
    ) -> MovementLedgerEntry:
        """
        Estornar un movimiento.

        Returns:
            MovementLedgerEntry: Estorno persistido (kind REVERSAL)

        Raises:
            NotFoundException: Si el movimiento no existe
            EntryNotReversibleError: Si es un estorno o ya fue estornado
        """
        original = await self.movement_repo.find_by_id(original_entry_id)
        if original is None:
            raise NotFoundException("Movimiento", original_entry_id)

        if original.is_reversal:
            raise EntryNotReversibleError(original_entry_id, "un estorno no puede estornarse")
        if await self.movement_repo.is_reversed(original_entry_id):
            raise EntryNotReversibleError(original_entry_id, "el movimiento ya fue estornado")

        await self.stock_repo.lock_key(original.warehouse_id, original.item_type_id, original.stock_status)
        balance_before = await self.movement_repo.latest_balance(
            original.warehouse_id, original.item_type_id, original.stock_status
        )
        reversal = original.reversal(
            balance_before=balance_before,
            actor_user_id=actor_user_id,
            created_at=self.clock.now(),
            notes=notes,
        )
        return await self.movement_repo.add(reversal)
