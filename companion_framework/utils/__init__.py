# Utils package

from .logging_config import get_logger, setup_logging
from .error_handling import ErrorHandler, ComponentError, ErrorSeverity
from .state_machine import TurnPhase, TurnStateMachine
from .safety_screen import screen_text

__all__ = [
    "get_logger",
    "setup_logging",
    "ErrorHandler",
    "ComponentError",
    "ErrorSeverity",
    "TurnPhase",
    "TurnStateMachine",
    "screen_text",
]
