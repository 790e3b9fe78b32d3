from __future__ import annotations

import logging
from typing import Optional

import anyio

from app.core.email_address import mask_email
from app.core.validation import validate_email
from app.services.codes import CodeGenerator
from app.services.mailer import EmailDispatcher
from app.services.verification import VerificationStatus, VerificationStore

logger = logging.getLogger(__name__)


class DeliveryFailed(Exception):
    """Письмо не ушло. Код при этом остается в store и действителен."""

    def __init__(self, reason: Optional[str] = None) -> None:
        self.reason = reason or "unknown error"
        super().__init__(f"Failed to send verification email: {self.reason}")


class EmailVerificationService:
    """Сценарий "запросить код" / "отправить код" поверх store и диспетчера."""

    def __init__(
        self,
        store: VerificationStore,
        generator: CodeGenerator,
        dispatcher: EmailDispatcher,
    ) -> None:
        self.store = store
        self.generator = generator
        self.dispatcher = dispatcher

    async def request_code(self, email: str, display_name: Optional[str] = None) -> int:
        """Выдает новый код и отправляет его письмом.

        Возвращает время жизни кода в секундах. При ошибке отправки бросает
        DeliveryFailed, но код уже сохранен, и повторный запрос выдаст новый.
        """
        address = (email or "").strip()
        validation = validate_email(address)
        if not validation.is_valid:
            raise ValueError(validation.error)

        code = self.generator.generate()
        self.store.put(address, code)

        # SMTP блокирующий, уводим в поток
        result = await anyio.to_thread.run_sync(
            self.dispatcher.send, address, code, display_name
        )
        if not result.ok:
            logger.warning(
                "Verification email to %s was not delivered: %s",
                mask_email(address),
                result.reason,
            )
            raise DeliveryFailed(result.reason)

        remaining = self.store.time_remaining(address)
        return remaining if remaining is not None else 0

    def submit_code(self, email: str, code: str) -> VerificationStatus:
        """Погашает код. Отказ приходит исключением VerificationError."""
        self.store.verify(email, (code or "").strip())
        return VerificationStatus.ACCEPTED

    def time_remaining(self, email: str) -> Optional[int]:
        return self.store.time_remaining(email)
