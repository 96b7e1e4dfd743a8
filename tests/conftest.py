"""Pytest configuration and shared fixtures."""

from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio

from bookingmapper.catalog import ColumnCatalog
from bookingmapper.mapping import MappingRuleSet, PlatformTag, TemplateStorage


HEADERS = [
    "Confirmation Code",
    "Guest",
    "Check-in Date",
    "Nights",
    "Channel",
    "Listing",
    "Rate",
    "Cleaning",
    "Revenue",
]


def make_row(
    code: str,
    listing: str,
    channel: str = "Airbnb",
    guest: str = "Jane Doe",
    rate: str = "100",
    revenue: str = "300",
) -> list[str]:
    return [code, guest, "2024-03-15", "3", channel, listing, rate, "50", revenue]


@pytest.fixture
def base_rule_set() -> MappingRuleSet:
    """Rule set mapping every required field to a column."""
    rule_set = MappingRuleSet(name="Base")
    rule_set.set_rule("reservation_code", "Confirmation Code")
    rule_set.set_rule("guest_name", "Guest")
    rule_set.set_rule("check_in_date", "Check-in Date")
    rule_set.set_rule("num_nights", "Nights")
    rule_set.set_rule("platform", "Channel")
    rule_set.set_rule("listing_name", "Listing")
    rule_set.set_rule("nightly_rate", "Rate")
    rule_set.set_rule("cleaning_fee", "Cleaning")
    rule_set.set_rule("total_payout", "Revenue")
    rule_set.set_rule("nightly_rate", "Rate*0.97", PlatformTag.AIRBNB)
    return rule_set


@pytest.fixture
def sample_catalog() -> ColumnCatalog:
    """Eight bookings over two listings and two channels."""
    rows = [make_row(f"LH-{i}", "Lake House") for i in range(5)]
    rows += [
        make_row(f"CM-{i}", "Casa Madera", channel="Booking.com") for i in range(3)
    ]
    return ColumnCatalog.from_rows(HEADERS, rows, source_name="bookings.csv")


@pytest_asyncio.fixture
async def template_storage(tmp_path: Path) -> AsyncGenerator[TemplateStorage, None]:
    """Create a template storage backed by a temporary database."""
    storage = TemplateStorage(tmp_path / "test_templates.db")
    await storage.initialize()
    yield storage
    await storage.close()


# Configure pytest-asyncio
def pytest_configure(config):
    """Configure pytest with asyncio settings."""
    config.addinivalue_line("markers", "asyncio: mark test as async")
