import json
import logging
from datetime import time
from decimal import Decimal

from django.db import IntegrityError
from django.test import SimpleTestCase, override_settings

from common.exceptions import custom_exception_handler
from common.logging import JsonFormatter
from common.utils import is_valid_phone_number, parse_range_bound, sanitize_phone_number, to_decimal, to_money


class PhoneNumberTests(SimpleTestCase):
    def test_sanitize_strips_formatting_and_prefixes_country_code(self):
        self.assertEqual(sanitize_phone_number("(987) 654-3210"), "+919876543210")
        self.assertEqual(sanitize_phone_number("+44 20 7946 0958"), "+442079460958")

    @override_settings(LEDGER_DEFAULT_COUNTRY_CODE="+1")
    def test_country_code_comes_from_settings(self):
        self.assertEqual(sanitize_phone_number("5551234567"), "+15551234567")

    def test_validation(self):
        self.assertTrue(is_valid_phone_number("98765 43210"))
        self.assertTrue(is_valid_phone_number("+919876543210"))
        self.assertFalse(is_valid_phone_number("0123"))
        self.assertFalse(is_valid_phone_number("phone"))


class NumberHelperTests(SimpleTestCase):
    def test_to_money_rounds_half_up(self):
        self.assertEqual(to_money(Decimal("2.345")), Decimal("2.35"))

    def test_to_decimal_falls_back_on_garbage(self):
        self.assertEqual(to_decimal("abc"), Decimal("0"))
        self.assertEqual(to_decimal("1.5"), Decimal("1.5"))


class RangeBoundTests(SimpleTestCase):
    def test_date_only_end_bound_covers_whole_day(self):
        start = parse_range_bound("2026-10-18")
        end = parse_range_bound("2026-10-18", end_of_day=True)

        self.assertEqual(start.time(), time.min)
        self.assertEqual(end.time(), time.max)
        self.assertIsNotNone(end.tzinfo)

    def test_business_date_format_is_accepted(self):
        self.assertEqual(parse_range_bound("10/18/2026").date().isoformat(), "2026-10-18")

    def test_datetime_is_kept(self):
        parsed = parse_range_bound("2026-10-18T10:30:00+00:00", end_of_day=True)

        self.assertEqual((parsed.hour, parsed.minute), (10, 30))

    def test_invalid_values_return_none(self):
        self.assertIsNone(parse_range_bound("yesterday"))
        self.assertIsNone(parse_range_bound("2026-13-45"))
        self.assertIsNone(parse_range_bound(""))


class JsonFormatterTests(SimpleTestCase):
    def test_ledger_extras_are_rendered(self):
        record = logging.LogRecord("ledger.stock", logging.INFO, __file__, 1, "stock_adjusted", None, None)
        record.item_id = "abc"
        record.bags = Decimal("1.5000")
        record.direction = "decrease"

        payload = json.loads(JsonFormatter().format(record))

        self.assertEqual(payload["message"], "stock_adjusted")
        self.assertEqual(payload["item_id"], "abc")
        self.assertEqual(payload["bags"], "1.5000")
        self.assertEqual(payload["direction"], "decrease")


class ExceptionHandlerTests(SimpleTestCase):
    def test_integrity_error_becomes_conflict(self):
        response = custom_exception_handler(IntegrityError("duplicate key"), {})

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["code"], "conflict")
