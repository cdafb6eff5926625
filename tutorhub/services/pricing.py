"""Price and duration helpers for reservations."""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal('0.01')


def compute_price(hourly_rate: Decimal | int | float | str | None, duration_minutes: int) -> Decimal:
    """Price of a lesson: hourly rate times duration in hours, rounded to cents."""
    rate = Decimal(str(hourly_rate or 0))
    return (rate * Decimal(duration_minutes) / Decimal(60)).quantize(CENT, rounding=ROUND_HALF_UP)


def format_duration(duration_minutes: int) -> str:
    hours, minutes = divmod(duration_minutes, 60)
    if hours and minutes:
        return f'{hours}h {minutes}m'
    if hours:
        return f'{hours}h'
    return f'{minutes}m'


def format_price(price: Decimal | int | float | str | None) -> str:
    return f"{Decimal(str(price or 0)).quantize(CENT, rounding=ROUND_HALF_UP):.2f}"
