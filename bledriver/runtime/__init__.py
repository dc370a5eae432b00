from .clock import Clock, SystemClock
from .retry import RetryPolicy
from .state import ConnectionState, SessionStatus
from .session import Session
from .router import NotificationRouter
from .duty_cycle import CycleOutcome, DutyCycleScheduler
from .actuation import ActuationEvent, ActuationProtocol, ActuationRequest
from .supervisor import SessionSupervisor
from .registry import DeviceRegistry

__all__ = ["Clock",
           "SystemClock",
           "RetryPolicy",
           "ConnectionState",
           "SessionStatus",
           "Session",
           "NotificationRouter",
           "CycleOutcome",
           "DutyCycleScheduler",
           "ActuationEvent",
           "ActuationProtocol",
           "ActuationRequest",
           "SessionSupervisor",
           "DeviceRegistry"]
