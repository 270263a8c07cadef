"""Renders a user's recent health records into an LLM context block."""

import asyncio
import json

from health_advisor.models.health import (
    HealthContextSnapshot,
    HealthDataType,
    HealthRecord,
    LabResultData,
    MealData,
    SymptomData,
)
from health_advisor.services.health_data import HealthDataProvider
from health_advisor.utils.logging import get_logger

logger = get_logger(__name__)

CONTEXT_HEADER = "HEALTH CONTEXT:"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"
DEFAULT_RECORD_LIMIT = 5


class HealthContextAssembler:
    """Builds the health context block injected into each chat prompt.

    Fetches recent meals, lab results and symptoms concurrently and renders
    them as labelled sections. Retrieval failures degrade to an empty context
    so that a chat turn never fails because health data is unavailable.
    """

    def __init__(self, provider: HealthDataProvider, limit: int = DEFAULT_RECORD_LIMIT):
        """Initialize the assembler.

        Args:
            provider: Source of health records
            limit: Default number of records fetched per record type
        """
        self.provider = provider
        self.limit = limit

    async def build_snapshot(self, user_id: str, limit: int | None = None) -> HealthContextSnapshot:
        """Fetch the recent records of every type for a user.

        Raises:
            Exception: Whatever the provider raises; callers decide how to degrade
        """
        per_type = self.limit if limit is None else limit

        meals, lab_results, symptoms = await asyncio.gather(
            self.provider.get_recent_records(user_id, HealthDataType.MEAL, per_type),
            self.provider.get_recent_records(user_id, HealthDataType.LAB_RESULT, per_type),
            self.provider.get_recent_records(user_id, HealthDataType.SYMPTOM, per_type),
        )
        return HealthContextSnapshot(meals=list(meals), lab_results=list(lab_results), symptoms=list(symptoms))

    async def build_context(self, user_id: str, limit: int | None = None) -> str:
        """Build the rendered context block, or "" if there is none or retrieval fails."""
        try:
            snapshot = await self.build_snapshot(user_id, limit)
        except Exception as e:
            logger.error(f"Failed to load health data for user {user_id}: {e}", exc_info=True)
            return ""

        if snapshot.is_empty():
            logger.debug(f"No health data available for context, user {user_id}")
            return ""

        context = render_context(snapshot)
        logger.debug(f"Health context built for user {user_id}: {len(context)} chars")
        return context


def render_context(snapshot: HealthContextSnapshot) -> str:
    """Render a snapshot as a ``HEALTH CONTEXT:`` block; "" when it is empty."""
    sections = [
        _render_section("Recent meals:", snapshot.meals),
        _render_section("Recent lab results:", snapshot.lab_results),
        _render_section("Recent symptoms:", snapshot.symptoms),
    ]
    sections = [section for section in sections if section]
    if not sections:
        return ""
    return f"{CONTEXT_HEADER}\n" + "\n\n".join(sections)


def _render_section(header: str, records: list[HealthRecord]) -> str:
    if not records:
        return ""
    return "\n".join([header, *(_render_record(record) for record in records)])


def _render_record(record: HealthRecord) -> str:
    when = record.timestamp.strftime(TIMESTAMP_FORMAT)
    data = record.data

    if isinstance(data, MealData):
        return f"- {when}: {data.description} ({data.meal_type})"
    if isinstance(data, LabResultData):
        results = json.dumps(data.results or {}, sort_keys=True, default=str)
        return f"- {when}: {data.test_type} - {results}"
    if isinstance(data, SymptomData):
        duration = data.duration or "Not specified"
        return f"- {when}: {data.description} (Severity: {data.severity}, Duration: {duration})"

    return f"- {when}: {data}"
