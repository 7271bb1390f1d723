from datetime import datetime

from app.rhub.utils import parse_datetime


def test_parse_datetime_converts_offsets_to_utc():
    assert parse_datetime("2024-05-01T12:00:00+02:00") == datetime(2024, 5, 1, 10, 0)
    assert parse_datetime("2024-05-01T12:00:00Z") == datetime(2024, 5, 1, 12, 0)
    assert parse_datetime("2024-05-01T12:00:00") == datetime(2024, 5, 1, 12, 0)
    assert parse_datetime("2024-05-01") == datetime(2024, 5, 1)
    assert parse_datetime("") is None
