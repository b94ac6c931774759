"""Single-slot persistence of the customer's pre-payment selection.

The intent is written right before the browser leaves for the hosted payment
form and read back by the return page. It is a convenience for resuming the
flow; the orchestrator's idempotency is what keeps the unlock single.
"""
import hashlib
import os
import tempfile
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import redis
from cachetools import TTLCache
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

SLOT_NAME = "pendingPaymentSelection"

# raised by store backends on I/O failure
STORE_ERRORS = (redis.RedisError, OSError)


class RentalIntent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    device_id: str = Field(alias="deviceNo", min_length=1)
    cart_id: Optional[str] = Field(None, alias="cartNo")
    cart_index: int = Field(alias="cartIndex", ge=0)
    site_id: Optional[str] = Field(None, alias="siteNo")
    amount_minor_units: int = Field(alias="amountHalalas", gt=0)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    def confirm_payload(self, payment_id: str) -> dict:
        return {
            "paymentId": payment_id,
            "deviceNo": self.device_id,
            "cartNo": self.cart_id,
            "cartIndex": self.cart_index,
            "siteNo": self.site_id or None,
            "amountHalalas": self.amount_minor_units,
        }


class IntentSlot:
    """The one named slot of a single browser session."""

    def __init__(self, store: "IntentStore", session_key: str):
        self._store = store
        self.session_key = session_key

    def put(self, intent: RentalIntent) -> None:
        self._store.write(self.session_key, intent.to_json())
        logger.info(
            f"Saved intent for session {self.session_key[:8]}: device={intent.device_id} "
            f"slot={intent.cart_index} amount={intent.amount_minor_units}"
        )

    def get(self) -> Optional[RentalIntent]:
        raw = self._store.read(self.session_key)
        if raw is None:
            return None
        try:
            return RentalIntent.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable intent for session {self.session_key[:8]}: {e}")
            return None

    def clear(self) -> None:
        self._store.delete(self.session_key)
        logger.info(f"Cleared intent for session {self.session_key[:8]}")


class IntentStore(ABC):
    def for_session(self, session_key: str) -> IntentSlot:
        return IntentSlot(self, session_key)

    @abstractmethod
    def read(self, session_key: str) -> Optional[str]: ...

    @abstractmethod
    def write(self, session_key: str, raw: str) -> None: ...

    @abstractmethod
    def delete(self, session_key: str) -> None: ...


class MemoryIntentStore(IntentStore):
    def __init__(self, ttl_sec: int = 3600, maxsize: int = 10_000):
        self._cache = TTLCache(maxsize=maxsize, ttl=ttl_sec)
        self._lock = threading.Lock()

    def read(self, session_key: str) -> Optional[str]:
        with self._lock:
            return self._cache.get(session_key)

    def write(self, session_key: str, raw: str) -> None:
        with self._lock:
            self._cache[session_key] = raw

    def delete(self, session_key: str) -> None:
        with self._lock:
            self._cache.pop(session_key, None)


class FileIntentStore(IntentStore):
    """One JSON file per session; the write is complete (fsynced and renamed) on return."""

    def __init__(self, directory: Path, ttl_sec: Optional[int] = None):
        self._directory = Path(directory)
        self._directory.mkdir(parents=True, exist_ok=True)
        self._ttl_sec = ttl_sec

    def _path(self, session_key: str) -> Path:
        digest = hashlib.sha256(session_key.encode("utf-8")).hexdigest()
        return self._directory / f"{digest}.{SLOT_NAME}.json"

    def read(self, session_key: str) -> Optional[str]:
        path = self._path(session_key)
        try:
            if self._ttl_sec and time.time() - path.stat().st_mtime > self._ttl_sec:
                logger.info(f"Intent for session {session_key[:8]} expired")
                return None
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Cannot read intent file {path}: {e}")
            return None

    def write(self, session_key: str, raw: str) -> None:
        path = self._path(session_key)
        fd, tmp_name = tempfile.mkstemp(dir=self._directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(raw)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def delete(self, session_key: str) -> None:
        self._path(session_key).unlink(missing_ok=True)


class RedisIntentStore(IntentStore):
    """Shared across console replicas; abandoned intents expire with the key."""

    _PREFIX = f"intent:{SLOT_NAME}:"

    def __init__(self, client: redis.Redis, ttl_sec: int = 3600):
        self._r = client
        self._ttl_sec = ttl_sec

    @classmethod
    def from_url(cls, url: str, ttl_sec: int = 3600) -> "RedisIntentStore":
        return cls(redis.Redis.from_url(url, decode_responses=True), ttl_sec=ttl_sec)

    def read(self, session_key: str) -> Optional[str]:
        return self._r.get(f"{self._PREFIX}{session_key}")

    def write(self, session_key: str, raw: str) -> None:
        self._r.setex(f"{self._PREFIX}{session_key}", self._ttl_sec, raw)

    def delete(self, session_key: str) -> None:
        self._r.delete(f"{self._PREFIX}{session_key}")


def build_intent_store(
    backend: str, directory: Path, ttl_sec: int, redis_url: Optional[str] = None
) -> IntentStore:
    if backend == "memory":
        return MemoryIntentStore(ttl_sec=ttl_sec)
    if backend == "file":
        return FileIntentStore(directory, ttl_sec=ttl_sec)
    if backend == "redis":
        return RedisIntentStore.from_url(redis_url or "redis://localhost:6379/0", ttl_sec=ttl_sec)
    raise ValueError(f"Unknown intent backend: {backend}")
