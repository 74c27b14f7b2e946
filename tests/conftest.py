import pytest

from helpers import IRAN_HEADLINES, FakeClock, make_item


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def iran_items():
    return [make_item(source, title) for source, title in IRAN_HEADLINES]
