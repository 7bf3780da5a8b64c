from syncledger.infrastructure.store.in_memory import InMemorySyncStore
from syncledger.infrastructure.store.postgres import PostgresSyncStore
from syncledger.infrastructure.store.sqlite import SqliteSyncStore

__all__ = ["InMemorySyncStore", "PostgresSyncStore", "SqliteSyncStore"]
