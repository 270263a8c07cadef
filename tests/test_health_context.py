"""Tests for health context assembly."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, Mock, call

import pytest

from conftest import FailingHealthDataProvider
from health_advisor.models.health import (
    HealthContextSnapshot,
    HealthDataType,
    HealthRecord,
    LabResultData,
    MealData,
    MealType,
    SymptomData,
    SymptomSeverity,
)
from health_advisor.services.health_context import HealthContextAssembler, render_context
from health_advisor.services.health_data import InMemoryHealthDataProvider

BASE_TIME = datetime(2024, 5, 1, 8, 30, tzinfo=UTC)


def meal(description="Oatmeal with berries", meal_type=MealType.BREAKFAST, timestamp=BASE_TIME):
    return HealthRecord(
        id="r1",
        user_id="user-1",
        type=HealthDataType.MEAL,
        data=MealData(description=description, meal_type=meal_type),
        timestamp=timestamp,
    )


def lab_result(timestamp=BASE_TIME):
    return HealthRecord(
        id="r2",
        user_id="user-1",
        type=HealthDataType.LAB_RESULT,
        data=LabResultData(test_type="Lipid panel", results={"ldl": 120, "hdl": 55}),
        timestamp=timestamp,
    )


def symptom(duration="2 days", timestamp=BASE_TIME):
    return HealthRecord(
        id="r3",
        user_id="user-1",
        type=HealthDataType.SYMPTOM,
        data=SymptomData(description="Headache", severity=SymptomSeverity.MILD, duration=duration),
        timestamp=timestamp,
    )


class TestRenderContext:
    """Tests for rendering a snapshot."""

    def test_all_sections(self):
        """Test the exact rendering of every record type."""
        snapshot = HealthContextSnapshot(meals=[meal()], lab_results=[lab_result()], symptoms=[symptom()])

        assert render_context(snapshot) == (
            "HEALTH CONTEXT:\n"
            "Recent meals:\n"
            "- 2024-05-01 08:30: Oatmeal with berries (breakfast)\n"
            "\n"
            "Recent lab results:\n"
            '- 2024-05-01 08:30: Lipid panel - {"hdl": 55, "ldl": 120}\n'
            "\n"
            "Recent symptoms:\n"
            "- 2024-05-01 08:30: Headache (Severity: mild, Duration: 2 days)"
        )

    def test_empty_sections_omitted(self):
        """Test that record types without records produce no section."""
        rendered = render_context(HealthContextSnapshot(symptoms=[symptom()]))

        assert "Recent meals:" not in rendered
        assert "Recent lab results:" not in rendered
        assert rendered.startswith("HEALTH CONTEXT:\nRecent symptoms:")

    def test_missing_duration(self):
        """Test that a symptom without a duration says so."""
        rendered = render_context(HealthContextSnapshot(symptoms=[symptom(duration="")]))

        assert "Duration: Not specified" in rendered

    def test_empty_snapshot(self):
        """Test that an empty snapshot renders nothing."""
        assert render_context(HealthContextSnapshot()) == ""

    def test_records_keep_given_order(self):
        """Test that records are rendered in the order received, newest first."""
        newer = meal(description="Salad", meal_type=MealType.LUNCH, timestamp=BASE_TIME + timedelta(hours=4))
        rendered = render_context(HealthContextSnapshot(meals=[newer, meal()]))

        assert rendered.index("Salad") < rendered.index("Oatmeal")


class TestHealthContextAssembler:
    """Tests for fetching and assembling context."""

    @pytest.mark.asyncio
    async def test_fetches_each_type_with_limit(self):
        """Test that each record type is fetched with the per-type limit."""
        provider = Mock()
        provider.get_recent_records = AsyncMock(return_value=[])
        assembler = HealthContextAssembler(provider)

        await assembler.build_snapshot("user-1", 3)

        provider.get_recent_records.assert_has_awaits(
            [
                call("user-1", HealthDataType.MEAL, 3),
                call("user-1", HealthDataType.LAB_RESULT, 3),
                call("user-1", HealthDataType.SYMPTOM, 3),
            ],
            any_order=True,
        )

    @pytest.mark.asyncio
    async def test_default_limit(self):
        """Test that the assembler's own limit applies when none is given."""
        provider = Mock()
        provider.get_recent_records = AsyncMock(return_value=[])
        assembler = HealthContextAssembler(provider, limit=5)

        await assembler.build_snapshot("user-1")

        assert all(c.args[2] == 5 for c in provider.get_recent_records.await_args_list)

    @pytest.mark.asyncio
    async def test_build_context_from_provider(self):
        """Test that logged records come back as a rendered context block."""
        provider = InMemoryHealthDataProvider()
        provider.add_record(
            "user-1",
            MealData(description="Oatmeal with berries", meal_type=MealType.BREAKFAST),
            HealthDataType.MEAL,
            timestamp=BASE_TIME,
        )
        assembler = HealthContextAssembler(provider)

        context = await assembler.build_context("user-1")

        assert context == "HEALTH CONTEXT:\nRecent meals:\n- 2024-05-01 08:30: Oatmeal with berries (breakfast)"

    @pytest.mark.asyncio
    async def test_build_context_respects_limit(self):
        """Test that only the most recent records per type are included."""
        provider = InMemoryHealthDataProvider()
        for hour in range(4):
            provider.add_record(
                "user-1",
                MealData(description=f"Meal {hour}", meal_type=MealType.SNACK),
                HealthDataType.MEAL,
                timestamp=BASE_TIME + timedelta(hours=hour),
            )
        assembler = HealthContextAssembler(provider)

        context = await assembler.build_context("user-1", 2)

        assert "Meal 3" in context
        assert "Meal 2" in context
        assert "Meal 1" not in context
        assert context.index("Meal 3") < context.index("Meal 2")

    @pytest.mark.asyncio
    async def test_no_records_gives_empty_context(self):
        """Test that a user without records gets an empty context."""
        assembler = HealthContextAssembler(InMemoryHealthDataProvider())

        assert await assembler.build_context("user-1") == ""

    @pytest.mark.asyncio
    async def test_provider_failure_gives_empty_context(self, caplog):
        """Test that retrieval failures degrade to an empty context and are logged."""
        assembler = HealthContextAssembler(FailingHealthDataProvider())

        with caplog.at_level("ERROR", logger="health_advisor.services.health_context"):
            context = await assembler.build_context("user-1")

        assert context == ""
        assert any("Failed to load health data" in record.getMessage() for record in caplog.records)

    @pytest.mark.asyncio
    async def test_snapshot_propagates_provider_failure(self):
        """Test that build_snapshot leaves degradation to its caller."""
        assembler = HealthContextAssembler(FailingHealthDataProvider())

        with pytest.raises(ConnectionError):
            await assembler.build_snapshot("user-1")
