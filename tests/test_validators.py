from datetime import datetime, timezone

from deepticker.domain import Quote
from deepticker.utils.validators import normalize_timestamp, to_native_float, to_positive_price


def test_timestamp_normalization_to_utc():
    ts = normalize_timestamp("2024-01-01T10:00:00+05:30")
    assert ts.tzinfo == timezone.utc
    assert ts.hour == 4


def test_epoch_and_naive_timestamps():
    assert normalize_timestamp(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)
    assert normalize_timestamp(datetime(2024, 1, 1, 12)).tzinfo == timezone.utc
    assert normalize_timestamp("2024-01-01T10:00:00Z").hour == 10


def test_numeric_cleaning():
    assert to_native_float(float("nan")) is None
    assert to_native_float("bad", default=0.0) == 0.0
    assert to_native_float("1.25%") == 1.25
    assert to_native_float({"raw": 3.5, "fmt": "3.50"}) == 3.5
    assert isinstance(to_native_float(1), float)


def test_non_positive_prices_mean_no_data():
    assert to_positive_price(0) is None
    assert to_positive_price("-1") is None
    assert to_positive_price("12.5") == 12.5


def test_quote_derives_change_from_previous_close():
    quote = Quote(symbol="aapl", price=110.0, previous_close=100.0, source="yahoo")
    assert quote.symbol == "AAPL"
    assert quote.change == 10.0
    assert quote.change_percent == 10.0
    assert not quote.is_cached
