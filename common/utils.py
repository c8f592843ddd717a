import re
from datetime import datetime, time
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

MONEY_QUANT = Decimal("0.01")

PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{1,14}$")
BUSINESS_DATE_PATTERN = re.compile(r"^\d{1,2}/\d{1,2}/\d{4}$")


def to_money(value):
    return Decimal(value).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def to_decimal(value, default=Decimal("0")):
    if value is None or value == "":
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default


def is_valid_phone_number(value):
    return bool(PHONE_PATTERN.match(re.sub(r"\s", "", value or "")))


def sanitize_phone_number(value):
    """Strip everything but digits and '+', defaulting to the configured country code."""
    if not value:
        return value
    cleaned = re.sub(r"[^\d+]", "", value)
    if not cleaned.startswith("+"):
        cleaned = f"{settings.LEDGER_DEFAULT_COUNTRY_CODE}{cleaned}"
    return cleaned


def parse_range_bound(value, *, end_of_day=False):
    """Parse a date or datetime query parameter into an aware datetime.

    Returns None when the value cannot be parsed.
    """
    if not value:
        return None
    try:
        parsed_date = parse_date(value)
        parsed = None if parsed_date is not None else parse_datetime(value)
    except ValueError:
        return None
    if parsed is None:
        if parsed_date is None:
            try:
                parsed_date = datetime.strptime(value, "%m/%d/%Y").date()
            except ValueError:
                return None
        parsed = datetime.combine(parsed_date, time.max if end_of_day else time.min)
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, timezone.get_current_timezone())
    return parsed
