"""Key-value store interface and implementations."""

from typing import Protocol

import redis


class StorageError(Exception):
    """Key-value store operation failed."""

    pass


class StorageQuotaExceededError(StorageError):
    """Write rejected because the store is full."""

    pass


class KeyValueStore(Protocol):
    """Synchronous string-keyed store."""

    def get(self, key: str) -> str | None:
        """Return the stored value or None if absent.

        Raises:
            StorageError: If the store cannot be read
        """
        ...

    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one.

        Raises:
            StorageQuotaExceededError: If the write would exceed capacity
            StorageError: On other failures
        """
        ...

    def remove(self, key: str) -> None:
        """Remove a key; missing keys are ignored."""
        ...


class InMemoryKeyValueStore:
    """In-memory store with a character quota, like browser local storage."""

    def __init__(self, capacity_chars: int | None = None) -> None:
        """Initialize store.

        Args:
            capacity_chars: Maximum total characters across keys and values
                (None = unlimited)
        """
        self._data: dict[str, str] = {}
        self._capacity = capacity_chars

    def _usage(self) -> int:
        return sum(len(k) + len(v) for k, v in self._data.items())

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if self._capacity is not None:
            current = self._data.get(key)
            freed = len(key) + len(current) if current is not None else 0
            if self._usage() - freed + len(key) + len(value) > self._capacity:
                raise StorageQuotaExceededError(
                    f"Writing {key!r} would exceed the {self._capacity} character quota"
                )
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class RedisKeyValueStore:
    """Redis-backed store."""

    def __init__(self, redis_client: redis.Redis) -> None:
        self._redis = redis_client

    @classmethod
    def from_url(cls, url: str) -> "RedisKeyValueStore":
        return cls(redis.from_url(url, decode_responses=True))  # type: ignore[no-untyped-call]

    def get(self, key: str) -> str | None:
        try:
            value = self._redis.get(key)
        except redis.RedisError as e:
            raise StorageError(f"Redis read failed for {key!r}") from e
        return value  # type: ignore[return-value]

    def set(self, key: str, value: str) -> None:
        try:
            self._redis.set(key, value)
        except redis.ResponseError as e:
            # maxmemory reached with a noeviction policy
            if str(e).startswith("OOM"):
                raise StorageQuotaExceededError(f"Redis is out of memory writing {key!r}") from e
            raise StorageError(f"Redis write failed for {key!r}") from e
        except redis.RedisError as e:
            raise StorageError(f"Redis write failed for {key!r}") from e

    def remove(self, key: str) -> None:
        try:
            self._redis.delete(key)
        except redis.RedisError as e:
            raise StorageError(f"Redis delete failed for {key!r}") from e

    def ping(self) -> bool:
        return bool(self._redis.ping())
