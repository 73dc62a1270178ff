"""Session Provider Events - Typed event stream.

A provider publishes one ordered stream of these events per device. The
orchestrator consumes it in a single dispatch loop, so lifecycle changes
and messages for one device are handled in delivery order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from wamanager.models import ProviderMessage


@dataclass(frozen=True)
class PairingChallenge:
    """Provider needs the account to be paired (QR challenge)."""

    payload: str


@dataclass(frozen=True)
class Ready:
    """Provider is connected as the given account."""

    account_id: str  # e.g. "6281234567@c.us" or bare number

    @property
    def phone_number(self) -> str:
        return self.account_id.split("@")[0]


@dataclass(frozen=True)
class Authenticated:
    """Stored credentials were accepted."""


@dataclass(frozen=True)
class MessageReceived:
    """A message arrived on the account."""

    message: ProviderMessage


@dataclass(frozen=True)
class Disconnected:
    """Provider lost its connection."""

    reason: str = ""


@dataclass(frozen=True)
class AuthFailure:
    """Provider rejected the stored credentials."""

    reason: str = ""


@dataclass(frozen=True)
class LoadingProgress:
    """Informational loading progress."""

    percent: int
    label: str = ""


@dataclass(frozen=True)
class StateChanged:
    """Informational provider-side state label."""

    label: str


ProviderEvent = Union[
    PairingChallenge,
    Ready,
    Authenticated,
    MessageReceived,
    Disconnected,
    AuthFailure,
    LoadingProgress,
    StateChanged,
]
