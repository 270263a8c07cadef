"""Health data provider interface and in-memory implementation."""

from typing import Protocol

from cuid2 import cuid_wrapper

from health_advisor.models.health import HealthDataType, HealthRecord, HealthRecordData

cuid = cuid_wrapper()


class HealthDataProvider(Protocol):
    """Read access to a user's logged health records."""

    async def get_recent_records(self, user_id: str, record_type: HealthDataType, limit: int) -> list[HealthRecord]:
        """Get the user's most recent records of one type.

        Args:
            user_id: Owner of the records
            record_type: Meal, lab result or symptom
            limit: Maximum number of records to return

        Returns:
            Records newest first; an empty list when the user has none

        Raises:
            Exception: Transport or authorization failures of the backing store
        """
        ...


class InMemoryHealthDataProvider:
    """In-memory health data provider.

    Records are added with ``add_record``; used for local runs and tests.
    """

    def __init__(self):
        self.records: list[HealthRecord] = []

    def add_record(self, user_id: str, data: HealthRecordData, record_type: HealthDataType, **kwargs) -> HealthRecord:
        """Log a record for a user. ``timestamp`` may be passed explicitly."""
        record = HealthRecord(id=cuid(), user_id=user_id, type=record_type, data=data, **kwargs)
        self.records.append(record)
        return record

    async def get_recent_records(self, user_id: str, record_type: HealthDataType, limit: int) -> list[HealthRecord]:
        matching = [r for r in self.records if r.user_id == user_id and r.type == record_type]
        matching.sort(key=lambda r: r.timestamp, reverse=True)
        return matching[: max(limit, 0)]
