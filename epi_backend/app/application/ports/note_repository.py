"""
Puerto para repositorio de notas de movimentação.
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from ....app.domain.entities.movement_note import MovementNote
from ....app.domain.enums import NoteKind, NoteStatus


class NoteRepository(ABC):
    """Puerto para operaciones de notas"""

    @abstractmethod
    async def add(self, note: MovementNote) -> MovementNote:
        """
        Persistir una nota nueva.

        Returns:
            MovementNote: Nota con ID asignado
        """
        pass

    @abstractmethod
    async def save(self, note: MovementNote) -> MovementNote:
        """
        Sincronizar cabecera e ítems de una nota existente.

        Returns:
            MovementNote: Nota con IDs de ítems asignados
        """
        pass

    @abstractmethod
    async def find_by_id(self, note_id: int, for_update: bool = False) -> Optional[MovementNote]:
        """
        Buscar nota por ID.

        Args:
            note_id: ID de la nota
            for_update: Bloquear la fila de la nota

        Returns:
            Optional[MovementNote]: Nota encontrada o None
        """
        pass

    @abstractmethod
    async def list(
        self,
        status: Optional[NoteStatus] = None,
        kind: Optional[NoteKind] = None,
        actor_user_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[MovementNote]:
        pass

    @abstractmethod
    async def delete(self, note_id: int) -> None:
        pass

    @abstractmethod
    async def max_sequence(self, number_prefix: str) -> int:
        """
        Mayor secuencia usada entre los números con el prefijo dado.

        Args:
            number_prefix: Prefijo del número (ej: "ENT-2025-")

        Returns:
            int: Mayor secuencia, o 0 si no existe ninguna
        """
        pass
