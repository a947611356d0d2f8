import unittest
from datetime import datetime, timedelta, timezone

from drivemirror.util.time import (
    EPOCH,
    as_utc,
    normalize_dt,
    now_utc,
    parse_rfc3339,
    to_query_time,
)


class TestUtilTime(unittest.TestCase):
    def test_now_utc_is_tz_aware(self) -> None:
        dt = now_utc()
        self.assertEqual(dt.tzinfo, timezone.utc)

    def test_epoch(self) -> None:
        self.assertEqual(EPOCH, datetime(1970, 1, 1, tzinfo=timezone.utc))

    def test_normalize_dt_rejects_naive(self) -> None:
        with self.assertRaises(ValueError):
            normalize_dt(datetime(2025, 1, 1, 12, 0, 0))

    def test_parse_rfc3339_z(self) -> None:
        dt = parse_rfc3339("2025-01-01T12:34:56Z")
        self.assertEqual(dt, datetime(2025, 1, 1, 12, 34, 56, tzinfo=timezone.utc))

    def test_parse_rfc3339_fractional_z(self) -> None:
        dt = parse_rfc3339("2025-01-01T12:34:56.123456Z")
        self.assertEqual(dt, datetime(2025, 1, 1, 12, 34, 56, 123456, tzinfo=timezone.utc))

    def test_parse_rfc3339_offset_converts_to_utc(self) -> None:
        dt = parse_rfc3339("2025-01-01T12:34:56+09:00")
        self.assertEqual(dt.tzinfo, timezone.utc)
        self.assertEqual(dt, datetime(2025, 1, 1, 3, 34, 56, tzinfo=timezone.utc))

    def test_to_query_time_is_utc_seconds(self) -> None:
        tokyo = timezone(timedelta(hours=9))
        s = to_query_time(datetime(2025, 1, 1, 9, 30, 15, 999999, tzinfo=tokyo))
        self.assertEqual(s, "2025-01-01T00:30:15")

    def test_to_query_time_rejects_naive(self) -> None:
        with self.assertRaises(ValueError):
            to_query_time(datetime(2025, 1, 1))

    def test_as_utc_treats_naive_as_utc(self) -> None:
        naive = datetime(2025, 1, 1, 12, 0, 0)
        self.assertEqual(as_utc(naive), datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc))

        tokyo = timezone(timedelta(hours=9))
        aware = datetime(2025, 1, 1, 21, 0, 0, tzinfo=tokyo)
        self.assertEqual(as_utc(aware), datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


if __name__ == "__main__":
    unittest.main()
