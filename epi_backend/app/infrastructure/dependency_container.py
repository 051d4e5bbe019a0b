"""
Contenedor de dependencias para la aplicación.
Centraliza la creación de Unit of Work y casos de uso.
"""

from sqlalchemy.ext.asyncio import async_sessionmaker

from ...app.core.clock import Clock


class DependencyContainer:
    """Contenedor para gestión de dependencias"""

    @staticmethod
    def get_unit_of_work(session_factory: async_sessionmaker):
        """Proveer Unit of Work sobre la fábrica de sesiones"""
        from .unit_of_work import SQLAlchemyUnitOfWork
        return SQLAlchemyUnitOfWork(session_factory)

    @staticmethod
    def get_case_use_manage_draft_note(session_factory: async_sessionmaker, clock: Clock):
        """Proveer caso de uso de rascunhos"""
        from ...app.application.use_cases.manage_draft_note import ManageDraftNoteUseCase
        return ManageDraftNoteUseCase(DependencyContainer.get_unit_of_work(session_factory), clock)

    @staticmethod
    def get_case_use_conclude_note(session_factory: async_sessionmaker, clock: Clock):
        """Proveer caso de uso de conclusión de notas"""
        from ...app.application.use_cases.conclude_note import ConcludeNoteUseCase
        return ConcludeNoteUseCase(DependencyContainer.get_unit_of_work(session_factory), clock)

    @staticmethod
    def get_case_use_cancel_note(session_factory: async_sessionmaker, clock: Clock):
        """Proveer caso de uso de cancelación de notas"""
        from ...app.application.use_cases.cancel_note import CancelNoteUseCase
        return CancelNoteUseCase(DependencyContainer.get_unit_of_work(session_factory), clock)

    @staticmethod
    def get_case_use_direct_adjustment(session_factory: async_sessionmaker, clock: Clock):
        """Proveer caso de uso de ajustes directos"""
        from ...app.application.use_cases.direct_adjustment import DirectAdjustmentUseCase
        return DirectAdjustmentUseCase(DependencyContainer.get_unit_of_work(session_factory), clock)

    @staticmethod
    def get_case_use_stock_queries(session_factory: async_sessionmaker):
        from ...app.application.use_cases.stock_queries import StockQueriesUseCase
        return StockQueriesUseCase(DependencyContainer.get_unit_of_work(session_factory))

    @staticmethod
    def get_case_use_catalog(session_factory: async_sessionmaker, clock: Clock):
        from ...app.application.use_cases.catalog import CatalogUseCase
        return CatalogUseCase(DependencyContainer.get_unit_of_work(session_factory), clock)

    @staticmethod
    def get_case_use_issue_entrega(session_factory: async_sessionmaker, clock: Clock):
        """Proveer caso de uso de entregas"""
        from ...app.application.use_cases.issue_entrega import IssueEntregaUseCase
        return IssueEntregaUseCase(DependencyContainer.get_unit_of_work(session_factory), clock)

    @staticmethod
    def get_case_use_process_return(session_factory: async_sessionmaker, clock: Clock):
        """Proveer caso de uso de devoluciones"""
        from ...app.application.use_cases.process_return import ProcessReturnUseCase
        return ProcessReturnUseCase(DependencyContainer.get_unit_of_work(session_factory), clock)


# Instancia global del contenedor
container = DependencyContainer()
