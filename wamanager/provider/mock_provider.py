"""Mock Session Provider - Scripted provider for development and tests.

Behaves like a real provider without any network: connect() emits a
pairing challenge (optional), authentication and ready events, and the
simulate_* helpers inject inbound traffic and failures.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from typing import Any

from wamanager.models import Conversation, ProviderMessage, SentMessage
from wamanager.provider.base import BaseSessionProvider
from wamanager.provider.events import (
    AuthFailure,
    Authenticated,
    Disconnected,
    LoadingProgress,
    MessageReceived,
    PairingChallenge,
    Ready,
)


class MockSessionProvider(BaseSessionProvider):
    """In-process provider with configurable behaviour.

    Options (all optional):
        account_id: Account identity reported on ready
        connect_delay_s: Time connect() takes
        connect_error: Exception raised by connect()
        teardown_error: Exception raised by teardown()
        teardown_delay_s: Time teardown() takes
        disconnect_on_teardown: Emit a disconnect event while tearing down
        send_error: Exception raised by send()
        pair: Emit a pairing challenge before ready
        auto_ready: Emit ready when connect() completes
        conversations: List of Conversation returned by list_conversations()
    """

    def __init__(self, device_id: str, options: dict[str, Any] | None = None) -> None:
        super().__init__(device_id, options)
        opts = self._options
        self.account_id: str = opts.get("account_id", "6280000000000@c.us")
        self.connect_delay_s: float = float(opts.get("connect_delay_s", 0.0))
        self.connect_error: Exception | None = opts.get("connect_error")
        self.teardown_error: Exception | None = opts.get("teardown_error")
        self.teardown_delay_s: float = float(opts.get("teardown_delay_s", 0.0))
        self.disconnect_on_teardown: bool = bool(opts.get("disconnect_on_teardown", False))
        self.send_error: Exception | None = opts.get("send_error")
        self.pair: bool = bool(opts.get("pair", False))
        self.auto_ready: bool = bool(opts.get("auto_ready", True))
        self.conversations: list[Conversation] = list(opts.get("conversations", []))

        self.connect_calls: int = 0
        self.release_calls: int = 0
        self.sent: list[SentMessage] = []

    async def connect(self) -> None:
        self.connect_calls += 1
        self.emit(LoadingProgress(percent=0, label="starting"))
        if self.connect_delay_s:
            await asyncio.sleep(self.connect_delay_s)
        if self.connect_error is not None:
            raise self.connect_error
        if self.pair:
            self.emit(PairingChallenge(payload=f"mock-qr:{self.device_id}:{uuid.uuid4().hex[:8]}"))
        if self.auto_ready:
            self.emit(Authenticated())
            self.emit(Ready(account_id=self.account_id))

    async def send(self, to_address: str, body: str) -> SentMessage:
        if self.send_error is not None:
            raise self.send_error
        sent = SentMessage(
            id=f"true_{to_address}_{uuid.uuid4().hex[:16].upper()}",
            from_address=self.account_id,
            to_address=to_address,
            timestamp=int(time.time()),
        )
        self.sent.append(sent)
        return sent

    async def list_conversations(self) -> list[Conversation]:
        return list(self.conversations)

    async def _release(self) -> None:
        self.release_calls += 1
        if self.disconnect_on_teardown:
            self.emit(Disconnected(reason="LOGOUT"))
        if self.teardown_delay_s:
            await asyncio.sleep(self.teardown_delay_s)
        if self.teardown_error is not None:
            raise self.teardown_error

    # -------------------------------------------------------------------------
    # Simulation helpers
    # -------------------------------------------------------------------------

    def simulate_ready(self, account_id: str | None = None) -> None:
        """Emit a ready event (e.g. after the QR was scanned)."""
        self.emit(Ready(account_id=account_id or self.account_id))

    def simulate_message(
        self,
        body: str,
        from_address: str = "6281111111111@c.us",
        **fields: Any,
    ) -> ProviderMessage:
        """Emit an inbound message and return it."""
        message = ProviderMessage(
            message_id=fields.pop("message_id", f"false_{from_address}_{uuid.uuid4().hex[:16].upper()}"),
            from_address=from_address,
            to_address=fields.pop("to_address", self.account_id),
            body=body,
            **fields,
        )
        self.emit(MessageReceived(message=message))
        return message

    def simulate_disconnect(self, reason: str = "NAVIGATION") -> None:
        """Emit a provider-side disconnect."""
        self.emit(Disconnected(reason=reason))

    def simulate_auth_failure(self, reason: str = "invalid session") -> None:
        """Emit an authentication failure."""
        self.emit(AuthFailure(reason=reason))
