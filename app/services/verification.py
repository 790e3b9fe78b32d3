from __future__ import annotations

import asyncio
import logging
import math
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from app.core.email_address import mask_email, normalize_email

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 10 * 60

Clock = Callable[[], float]


class VerificationStatus(str, Enum):
    ACCEPTED = "accepted"
    NOT_FOUND = "rejected-not-found"
    EXPIRED = "rejected-expired"
    MISMATCH = "rejected-mismatch"


class VerificationError(Exception):
    """Базовая ошибка проверки кода. Все ошибки восстановимы."""

    status: VerificationStatus
    message = "Verification failed."

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message


class CodeNotFound(VerificationError):
    status = VerificationStatus.NOT_FOUND
    message = "No verification code found. Please request a new code."


class CodeExpired(VerificationError):
    status = VerificationStatus.EXPIRED
    message = "Verification code expired. Please request a new code."


class CodeMismatch(VerificationError):
    status = VerificationStatus.MISMATCH
    message = "Invalid verification code."


@dataclass(frozen=True)
class VerificationEntry:
    identity: str
    code: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class VerificationStore:
    """In-memory хранилище кодов подтверждения.

    Один живой код на адрес; повторный put заменяет запись целиком.
    Все операции выполняются под общим замком и ничего не ждут, поэтому
    store можно вызывать и из event loop, и из потоков.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Clock = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, VerificationEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def put(self, identity: str, code: str) -> VerificationEntry:
        key = normalize_email(identity)
        with self._lock:
            entry = VerificationEntry(
                identity=key,
                code=code,
                expires_at=self._clock() + self.ttl_seconds,
            )
            replaced = key in self._entries
            self._entries[key] = entry
        logger.info(
            "Verification code stored for %s%s",
            mask_email(key),
            " (previous code replaced)" if replaced else "",
        )
        return entry

    def verify(self, identity: str, submitted_code: str) -> None:
        """Проверяет и погашает код. Бросает VerificationError при отказе."""
        key = normalize_email(identity)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                raise CodeNotFound()
            if entry.is_expired(self._clock()):
                self._entries.pop(key, None)
                logger.info("Verification code expired for %s", mask_email(key))
                raise CodeExpired()
            if entry.code != submitted_code:
                raise CodeMismatch()
            self._entries.pop(key, None)
        logger.info("Verification code consumed for %s", mask_email(key))

    def time_remaining(self, identity: str) -> Optional[int]:
        """Секунды до истечения кода (с округлением вверх) или None."""
        key = normalize_email(identity)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            remaining = entry.expires_at - self._clock()
        return max(0, math.ceil(remaining))

    def sweep(self) -> int:
        """Удаляет все истекшие записи и возвращает их количество."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                self._entries.pop(key, None)
        if expired:
            logger.debug("Swept %d expired verification code(s)", len(expired))
        return len(expired)


class VerificationSweeper:
    """Периодически вызывает store.sweep() в фоновой задаче."""

    def __init__(self, store: VerificationStore, interval_seconds: float) -> None:
        self.store = store
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="verification-sweeper")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.store.sweep()
            except Exception:
                logger.exception("Verification sweep failed")
