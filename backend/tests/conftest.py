"""
Pytest configuration and shared fixtures for testing.
"""
import sys
from pathlib import Path

# Add project root (for libs/) and backend/ (for portal/) to the path so tests
# run without an editable install (matches CI PYTHONPATH config)
backend_root = Path(__file__).parent.parent
project_root = backend_root.parent
for path in (project_root, backend_root):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from typing import Dict, List, Optional, Sequence  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from libs.domain_types import CANONICAL_DIMENSION_ORDER, Dimension  # noqa: E402
from portal.core.assessment import (  # noqa: E402
    AssessmentConfig,
    AssessmentEngine,
    ItemBank,
    PsychometricItem,
    load_item_bank,
)
from portal.core.assessment.service import AssessmentService  # noqa: E402
from portal.core.auth import USER_ID_HEADER  # noqa: E402

# Difficulties of the minimal bank: five items centered on zero
UNIFORM_DIFFICULTIES = (-0.4, -0.2, 0.0, 0.2, 0.4)


def make_item(
    item_id: str,
    dimension: Dimension = Dimension.EI,
    pole: Optional[str] = None,
    difficulty: float = 0.0,
    discrimination: float = 1.0,
    metadata: Optional[Dict[str, str]] = None,
) -> PsychometricItem:
    """Build an item keyed toward ``pole`` (defaults to the first pole)."""
    return PsychometricItem(
        id=item_id,
        dimension=dimension,
        pole=pole or dimension.first_pole,
        difficulty=difficulty,
        discrimination=discrimination,
        text=f"Statement {item_id}",
        metadata=metadata or {},
    )


def make_uniform_items(
    difficulties: Sequence[float] = UNIFORM_DIFFICULTIES,
    discrimination: float = 1.0,
) -> List[PsychometricItem]:
    """Items for every dimension, all keyed toward the first pole."""
    return [
        make_item(
            f"{dimension.value}-{index + 1:02d}",
            dimension=dimension,
            difficulty=difficulty,
            discrimination=discrimination,
        )
        for dimension in CANONICAL_DIMENSION_ORDER
        for index, difficulty in enumerate(difficulties)
    ]


def answer_toward(
    item: PsychometricItem, type_code: str, scale: Sequence[int] = (0, 1)
) -> int:
    """Answer that favors the pole ``type_code`` holds for the item's dimension."""
    target = type_code[CANONICAL_DIMENSION_ORDER.index(item.dimension)]
    low, high = scale
    return high if item.pole == target else low


def run_to_completion(engine: AssessmentEngine, session, type_code: str) -> int:
    """Answer every item toward ``type_code``; returns the number of answers."""
    answered = 0
    while True:
        item = engine.next_item(session)
        if item is None:
            return answered
        engine.record_response(
            session, item.id, answer_toward(item, type_code, engine.config.response_scale)
        )
        answered += 1


@pytest.fixture
def uniform_bank() -> ItemBank:
    """Five first-pole items per dimension, a=1.0, b from -0.4 to 0.4."""
    return ItemBank(make_uniform_items())


@pytest.fixture
def default_bank() -> ItemBank:
    """The packaged MBTI item bank."""
    return load_item_bank()


@pytest.fixture
def engine(uniform_bank) -> AssessmentEngine:
    return AssessmentEngine(uniform_bank, AssessmentConfig())


@pytest.fixture
def default_engine(default_bank) -> AssessmentEngine:
    return AssessmentEngine(default_bank, AssessmentConfig())


@pytest.fixture
def assessment_service(default_engine) -> AssessmentService:
    return AssessmentService(engine=default_engine)


@pytest.fixture
def client(assessment_service):
    """Test client for an application wired to a fresh service."""
    from portal.main import create_application

    app = create_application(service=assessment_service)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    return {USER_ID_HEADER: "user-1"}
