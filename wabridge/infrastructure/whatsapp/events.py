"""
Lifecycle signals and session states.

The WhatsApp client reports lifecycle changes as plain callbacks; the
session turns each one into one of the signals below and applies it in
a single transition function.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union


class SessionState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    AWAITING_QR = "awaiting_qr"
    READY = "ready"
    AUTH_FAILED = "auth_failed"
    DISCONNECTED = "disconnected"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class QRReceived:
    payload: str


@dataclass(frozen=True)
class Ready:
    pass


@dataclass(frozen=True)
class AuthFailure:
    message: str = ""


@dataclass(frozen=True)
class Disconnected:
    reason: str = ""


Signal = Union[QRReceived, Ready, AuthFailure, Disconnected]
