"""Unit tests for the process-wide server clock estimate."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import httpx

from TypedAPI.server_time import (
    ServerTime,
    get_server_time,
    parse_server_date,
    set_server_time,
    update_server_time,
)


def server_date(offset_seconds: float) -> datetime:
    return datetime.now(timezone.utc) + timedelta(seconds=offset_seconds)


class TestServerTime:
    """ServerTime values."""

    def test_from_date(self):
        estimate = ServerTime.from_date(server_date(30))

        assert 29 < estimate.offset <= 30

    def test_naive_dates_are_utc(self):
        naive = (datetime.now(timezone.utc) + timedelta(seconds=10)).replace(tzinfo=None)

        assert 9 < ServerTime.from_date(naive).offset <= 10

    def test_time_and_date_since_now(self):
        estimate = ServerTime(offset=3600)
        expected = datetime.now(timezone.utc) + timedelta(hours=1)

        assert abs((estimate.time - expected).total_seconds()) < 1
        assert abs((estimate.date_since_now(-3600) - datetime.now(timezone.utc)).total_seconds()) < 1


class TestSharedEstimate:
    """Process-wide last-write-wins estimate."""

    def test_last_write_wins(self):
        for offset in (1, 5, 2):
            update_server_time(server_date(offset))

        assert abs(get_server_time().offset - 2) < 0.5

    def test_set_overwrites(self):
        set_server_time(ServerTime(offset=-7.5))

        assert get_server_time().offset == -7.5

    def test_concurrent_updates_keep_a_whole_value(self):
        offsets = [float(i) for i in range(50)]
        threads = [
            threading.Thread(target=set_server_time, args=(ServerTime(offset=offset),))
            for offset in offsets
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert get_server_time().offset in offsets


class TestParseServerDate:
    """Date header parsing."""

    def test_rfc_7231_date(self):
        response = httpx.Response(200, headers={"Date": "Wed, 21 Oct 2015 07:28:00 GMT"})

        assert parse_server_date(response) == datetime(2015, 10, 21, 7, 28, tzinfo=timezone.utc)

    def test_missing_or_invalid(self):
        assert parse_server_date(httpx.Response(200)) is None
        assert parse_server_date(httpx.Response(200, headers={"Date": "yesterday"})) is None
        assert parse_server_date(None) is None
