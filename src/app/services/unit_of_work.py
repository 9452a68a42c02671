from abc import ABC, abstractmethod


class UnitOfWork(ABC):
    """
    Transaction boundary of a use case

    Use cases commit after every step that must survive a later failure,
    e.g. the debit is committed before the provider is called.
    """

    @abstractmethod
    async def commit(self):
        pass

    @abstractmethod
    async def rollback(self):
        """Discard uncommitted changes; a no-op outside a transaction"""
        pass
