from decimal import Decimal

import pytest

from tutorhub.services.pricing import compute_price, format_duration, format_price


@pytest.mark.parametrize(
    ('hourly_rate', 'duration_minutes', 'expected'),
    [
        (Decimal('120.00'), 60, Decimal('120.00')),
        (Decimal('120.00'), 90, Decimal('180.00')),
        (Decimal('45.50'), 30, Decimal('22.75')),
        (Decimal('33.33'), 45, Decimal('25.00')),
        ('80', 50, Decimal('66.67')),
        (None, 60, Decimal('0.00')),
    ],
)
def test_compute_price_rounds_to_cents(hourly_rate, duration_minutes, expected) -> None:
    assert compute_price(hourly_rate, duration_minutes) == expected


@pytest.mark.parametrize(
    ('duration_minutes', 'expected'),
    [(90, '1h 30m'), (60, '1h'), (45, '45m'), (480, '8h')],
)
def test_format_duration(duration_minutes, expected) -> None:
    assert format_duration(duration_minutes) == expected


def test_format_price_always_shows_two_decimals() -> None:
    assert format_price(Decimal('120')) == '120.00'
    assert format_price(Decimal('22.755')) == '22.76'
    assert format_price(None) == '0.00'
