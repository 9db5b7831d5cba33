"""Repository stores for engine entities."""

from payplan.store.memory import EngineDataStore, IdempotencyRecord

__all__ = ["EngineDataStore", "IdempotencyRecord"]
