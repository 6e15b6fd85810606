from __future__ import annotations

import pytest

from expense_categorizer.models import CategorizedTransaction, RecurringAnalysis, Transaction
from expense_categorizer.recurring import (
    classify_frequency,
    detect_recurring,
    has_subscription_keyword,
    is_excluded_merchant,
)


def _charges(
    description: str,
    dates: list[str],
    amounts: list[float] | float,
    category: str = "Entertainment",
) -> list[CategorizedTransaction]:
    if not isinstance(amounts, list):
        amounts = [amounts] * len(dates)
    return [
        CategorizedTransaction(Transaction(d, description, -a), category, 0.95)
        for d, a in zip(dates, amounts, strict=True)
    ]


NETFLIX = _charges(
    "NETFLIX.COM", ["2024-02-15", "2024-01-15", "2024-04-15", "2024-03-15"], 15.99
)
GYM = _charges(
    "PLANET FITNESS #123", ["2024-01-05", "2024-02-05", "2024-03-05"], 24.99, "Healthcare"
)
INSURANCE = _charges(
    "ACME INSURANCE CO",
    ["2024-01-10", "2024-04-10", "2024-07-10"],
    300.0,
    "Bills & Utilities",
)
DOMAIN = _charges(
    "DOMAIN REGISTRAR", ["2021-06-01", "2022-06-01", "2023-06-01"], 20.0, "Other"
)


def test_empty_input_gives_an_empty_analysis() -> None:
    assert detect_recurring([]) == RecurringAnalysis()


def test_monthly_subscription_is_detected() -> None:
    analysis = detect_recurring(NETFLIX)

    [netflix] = analysis.recurring
    assert netflix.merchant == "NETFLIX.COM"
    assert netflix.frequency == "monthly"
    assert netflix.occurrences == 4
    assert netflix.confidence == 1.0
    assert netflix.dates == ("2024-01-15", "2024-02-15", "2024-03-15", "2024-04-15")
    assert netflix.next_expected_date == "2024-05-15"
    assert netflix.average_amount == 15.99
    assert netflix.total_spent == 63.96
    assert netflix.category == "Entertainment"

    [group] = analysis.groups
    assert group.group_name == "Streaming Services"
    assert group.total_monthly == 15.99
    assert group.total_annual == pytest.approx(191.88)
    assert analysis.hidden_count == 1


def test_mixed_frequencies_are_summarized() -> None:
    analysis = detect_recurring(NETFLIX + GYM + INSURANCE + DOMAIN)

    assert [(r.merchant, r.frequency) for r in analysis.recurring] == [
        ("ACME INSURANCE CO", "quarterly"),
        ("PLANET FITNESS", "monthly"),
        ("NETFLIX.COM", "monthly"),
        ("DOMAIN REGISTRAR", "annual"),
    ]
    assert [g.group_name for g in analysis.groups] == [
        "Streaming Services",
        "Fitness & Health",
        "Utilities & Bills",
        "Other Subscriptions",
    ]
    utilities = analysis.groups[2]
    assert (utilities.total_monthly, utilities.total_annual) == (100.0, 1200.0)
    other = analysis.groups[3]
    assert (other.total_monthly, other.total_annual) == (1.67, 20.0)

    # monthly items plus a third of each quarterly charge
    assert analysis.total_monthly_spend == pytest.approx(140.98)
    assert analysis.total_annual_spend == pytest.approx(20.0 + 12 * 140.98)
    assert analysis.hidden_count == 1


def test_fuel_purchases_are_never_subscriptions() -> None:
    fuel = _charges(
        "SHELL OIL #1234",
        ["2024-01-03", "2024-02-02", "2024-03-04"],
        [25.0, 60.0, 35.0],
        "Transportation",
    )
    assert detect_recurring(fuel).recurring == ()


@pytest.mark.parametrize("description", ["MARATHON GAS 1234", "GULF OIL 92011", "CITGO GAS #8"])
def test_fuel_stations_without_a_brand_pattern_are_excluded(description: str) -> None:
    fuel = _charges(
        description,
        ["2024-01-10", "2024-02-10", "2024-03-10"],
        [25.0, 60.0, 35.0],
        "Transportation",
    )
    assert detect_recurring(fuel).recurring == ()


def test_gas_utility_bill_is_still_detected() -> None:
    bill = _charges(
        "NATIONAL GAS COMPANY",
        ["2024-01-10", "2024-02-10", "2024-03-10"],
        [80.0, 120.0, 95.0],
        "Bills & Utilities",
    )

    [item] = detect_recurring(bill).recurring
    assert item.frequency == "monthly"


def test_varying_amounts_need_a_subscription_keyword() -> None:
    dates = ["2024-01-20", "2024-02-20", "2024-03-20"]
    club = _charges("LOCAL CLUB", dates, [10.0, 30.0, 50.0], "Other")
    water = _charges("CITY WATER DEPT", dates, [40.0, 55.0, 48.0], "Bills & Utilities")

    analysis = detect_recurring(club + water)

    [bill] = analysis.recurring
    assert bill.merchant == "CITY WATER DEPT"
    assert bill.confidence == pytest.approx(0.8)


def test_two_charges_are_not_enough() -> None:
    hulu = _charges("HULU", ["2024-01-01", "2024-02-01"], 7.99)
    assert detect_recurring(hulu).recurring == ()


def test_irregular_gaps_are_reported_as_unknown_frequency() -> None:
    spotify = _charges("SPOTIFY USA", ["2024-01-01", "2024-01-11", "2024-01-21"], 9.99)

    analysis = detect_recurring(spotify)

    [item] = analysis.recurring
    assert item.frequency == "unknown"
    assert item.next_expected_date == "2024-01-31"
    assert analysis.total_monthly_spend == 0.0
    assert analysis.hidden_count == 0


@pytest.mark.parametrize(
    ("mean", "intervals", "expected"),
    [
        (30.0, 1, "monthly"),
        (25.0, 3, "monthly"),
        (91.0, 2, "quarterly"),
        (365.0, 2, "annual"),
        (50.0, 2, "unknown"),
        (50.0, 1, None),
    ],
)
def test_classify_frequency(mean: float, intervals: int, expected: str | None) -> None:
    assert classify_frequency(mean, intervals) == expected


@pytest.mark.parametrize(
    ("description", "excluded"),
    [
        ("COSTCO WHSE #0123", True),
        ("COSTCO MEMBERSHIP", False),
        ("DOORDASH*CHIPOTLE", True),
        ("DOORDASH DASHPASS", False),
        ("AMAZON MKTPL*2K4", True),
        ("PAYMENT THANK YOU-MOBILE", True),
        ("NETFLIX.COM", False),
        ("UBER *TRIP HELP.UBER.COM", True),
        ("E-ZPASS REBILL", True),
        ("METRO TRANSIT 0412", True),
        ("METROCARD PASS", False),
        ("MARKET 32 #140", True),
        ("AMAZON.COMA12BC3", True),
        ("PAYMENT", True),
        ("CITY CAB CO", True),
        ("COMCAST CABLE", False),
    ],
)
def test_is_excluded_merchant(description: str, excluded: bool) -> None:
    assert is_excluded_merchant(description) is excluded


def test_has_subscription_keyword() -> None:
    assert has_subscription_keyword("city water", "CITY WATER DEPT")
    assert not has_subscription_keyword("local club")
