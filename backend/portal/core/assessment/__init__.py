"""
Adaptive psychometric assessment engine.

This package provides item-bank indexing, MLE ability estimation, maximum
information item selection, stopping rules and the session orchestrator that
sequences the four MBTI dimensions into a cognitive profile.
"""

from .ability_estimation import estimate_ability_mle, probability_pole_a
from .engine import (
    AdaptiveSession,
    AssessmentConfig,
    AssessmentEngine,
    DimensionState,
    Response,
    StepResult,
)
from .exceptions import (
    AssessmentError,
    ConfigurationError,
    InvalidStateError,
    ItemNotFoundError,
    NotFound,
    SessionNotFoundError,
)
from .item_bank import ItemBank, PsychometricItem, load_item_bank
from .item_selection import EXHAUSTED, Exhausted, fisher_information, select_next_item
from .results import (
    CognitiveProfile,
    DimensionResult,
    build_profile,
    calculate_confidence,
    theta_to_preference,
)
from .session_store import InMemoryResultRepository, ResultRepository, SessionStore
from .simulation import (
    SimulationResult,
    generate_item_bank,
    run_simulation,
    simulate_respondent,
)
from .stopping_rules import StoppingDecision, check_stopping_criteria
from .validity import AssessmentValidity, check_validity

__all__ = [
    "AdaptiveSession",
    "AssessmentConfig",
    "AssessmentEngine",
    "DimensionState",
    "Response",
    "StepResult",
    "AssessmentError",
    "ConfigurationError",
    "InvalidStateError",
    "ItemNotFoundError",
    "NotFound",
    "SessionNotFoundError",
    "ItemBank",
    "PsychometricItem",
    "load_item_bank",
    "EXHAUSTED",
    "Exhausted",
    "fisher_information",
    "select_next_item",
    "estimate_ability_mle",
    "probability_pole_a",
    "CognitiveProfile",
    "DimensionResult",
    "build_profile",
    "calculate_confidence",
    "theta_to_preference",
    "InMemoryResultRepository",
    "ResultRepository",
    "SessionStore",
    "SimulationResult",
    "generate_item_bank",
    "run_simulation",
    "simulate_respondent",
    "StoppingDecision",
    "check_stopping_criteria",
    "AssessmentValidity",
    "check_validity",
]
