from datetime import date, timedelta

import pytest


class FakeClock:
    def __init__(self, today: date):
        self.today = today

    def __call__(self) -> date:
        return self.today

    def advance(self, days: int = 1) -> None:
        self.today = self.today + timedelta(days=days)


@pytest.fixture
def clock():
    return FakeClock(date(2024, 3, 1))
