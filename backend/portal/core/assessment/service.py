"""
Process-wide wiring of the assessment engine, live sessions and results.

Built once at application startup from settings. The item bank is loaded and
validated here, so an under-provisioned bank fails the startup with
``ConfigurationError`` instead of surfacing mid-assessment.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from portal.core.assessment.engine import AssessmentConfig, AssessmentEngine
from portal.core.assessment.item_bank import ItemBank, load_item_bank
from portal.core.assessment.session_store import (
    InMemoryResultRepository,
    ResultRepository,
    SessionStore,
)

logger = logging.getLogger(__name__)


@dataclass
class AssessmentService:
    """Engine plus the stores the API layer works against."""

    engine: AssessmentEngine
    sessions: SessionStore = field(default_factory=SessionStore)
    results: ResultRepository = field(default_factory=InMemoryResultRepository)


def build_assessment_service(
    settings: Any, item_bank: Optional[ItemBank] = None
) -> AssessmentService:
    """
    Create the service from application settings.

    Args:
        settings: Application settings (``portal.core.config.Settings``).
        item_bank: Optional pre-built bank; loaded from ``ITEM_BANK_PATH`` or
            the packaged default otherwise.

    Raises:
        ConfigurationError: If the bank or the configuration is unusable.
    """
    config = AssessmentConfig.from_settings(settings)
    bank = item_bank if item_bank is not None else load_item_bank(
        settings.ITEM_BANK_PATH,
        dimensions=config.dimension_order,
        min_items_per_dimension=settings.ASSESSMENT_MIN_BANK_ITEMS_PER_DIMENSION,
    )
    cleanup_interval = settings.ASSESSMENT_STORE_CLEANUP_INTERVAL_SECONDS
    service = AssessmentService(
        engine=AssessmentEngine(bank, config),
        sessions=SessionStore(
            ttl_seconds=settings.ASSESSMENT_SESSION_TTL_SECONDS,
            completed_ttl_seconds=settings.ASSESSMENT_COMPLETED_SESSION_TTL_SECONDS,
            cleanup_interval=cleanup_interval,
        ),
        results=InMemoryResultRepository(
            ttl_seconds=settings.ASSESSMENT_RESULT_TTL_SECONDS,
            cleanup_interval=cleanup_interval,
        ),
    )
    logger.info(f"Assessment service ready with {len(bank)} items")
    return service
