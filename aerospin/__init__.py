"""AEROSPIN device connectivity and state-reconciliation core."""

from .alerts import Alert, AlertCategory, AlertLevel, AlertLog
from .client_api import ClientAPI
from .config import ControlConfig
from .controller import DeviceController
from .errors import AerospinError, CommandFailed, ResetRecoveryExhausted, ResolutionFailure
from .state.models import Brake, ConnectionState, DeviceState, Direction, SessionData, SessionEvent

__all__ = [
    "AerospinError",
    "Alert",
    "AlertCategory",
    "AlertLevel",
    "AlertLog",
    "Brake",
    "ClientAPI",
    "CommandFailed",
    "ConnectionState",
    "ControlConfig",
    "DeviceController",
    "DeviceState",
    "Direction",
    "ResetRecoveryExhausted",
    "ResolutionFailure",
    "SessionData",
    "SessionEvent",
]
