"""
Constants and helpers shared by fixtures and tests.
"""

from datetime import datetime, timedelta, timezone

TEST_CONTROLLER_URL = "https://omada.test:8043"
TEST_TENANT_ID = "c0ffee0123456789"
TEST_CLIENT_ID = "client-7f3a"
TEST_CLIENT_SECRET = "s3cr3t-Value-XYZ"


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)
