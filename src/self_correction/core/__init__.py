"""Core engine components."""

from .detectors import (
    HallucinationDetector,
    IncompletenessDetector,
    LogicDetector,
    SecurityDetector,
    StyleDetector,
    SyntaxDetector,
    TypeMismatchDetector,
)
from .engine import SelfCorrectionEngine, create_engine, pass_through
from .error_detector import ErrorDetector
from .events import EventBus, Subscription
from .orchestrator import CorrectionOrchestrator
from .session_store import SessionStore
from .strategy_selector import StrategySelector
from .validator import ValidatorAdapter, accept_all

__all__ = [
    # Engine
    "SelfCorrectionEngine",
    "create_engine",
    "pass_through",
    # Components
    "CorrectionOrchestrator",
    "ErrorDetector",
    "EventBus",
    "SessionStore",
    "StrategySelector",
    "Subscription",
    "ValidatorAdapter",
    "accept_all",
    # Detectors
    "HallucinationDetector",
    "IncompletenessDetector",
    "LogicDetector",
    "SecurityDetector",
    "StyleDetector",
    "SyntaxDetector",
    "TypeMismatchDetector",
]
