"""Services for registration, acknowledgement and campaign dispatch."""
from .push_gateway import PushGateway, FCMPushGateway
from .dispatch_engine import DispatchEngine
from .registration import RegistrationService
from .acknowledgement import AcknowledgementService
from .scheduler import SchedulerService

__all__ = [
    "PushGateway",
    "FCMPushGateway",
    "DispatchEngine",
    "RegistrationService",
    "AcknowledgementService",
    "SchedulerService",
]
