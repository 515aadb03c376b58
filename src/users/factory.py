"""Factory for user store backends."""

from src.config.settings import get_settings
from src.users.store import JSONUserStore, MemoryUserStore, UserStore

_store: UserStore | None = None


def get_user_store() -> UserStore:
    """Get the user store singleton for the configured backend."""
    global _store
    if _store is not None:
        return _store

    settings = get_settings()
    backend = settings.user_store_backend

    if backend == "memory":
        _store = MemoryUserStore()
    elif backend == "json":
        _store = JSONUserStore(settings.user_store_path)
    elif backend == "dynamodb":
        # Lazy import to avoid boto3 dependency when not needed
        from src.users.dynamodb_store import DynamoDBUserStore
        _store = DynamoDBUserStore(
            table_name=settings.dynamodb_table_name,
            region=settings.aws_region,
        )
    else:
        raise ValueError(f"Unknown user store backend: {backend}")

    return _store
