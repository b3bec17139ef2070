import pandas as pd
import pytest

from prep.normalize import classify_device, classify_reason, normalize_events, END_REASONS, START_REASONS

from conftest import play


@pytest.mark.parametrize("platform, expected", [
    ("Android OS 9 API 28 (samsung, SM-G960F)", "Phone"),
    ("android", "Phone"),
    ("ANDROID 12", "Phone"),
    ("WINDOWS 11", "Computer"),
    ("macOS 14.1", "Computer"),
    ("LINUX", "Computer"),
    ("iOS 14.4 (iPhone12,1)", "Phone"),
    ("Windows 10 (10.0.19041; x64)", "Computer"),
    ("OS X 10.15.7 [x86 8]", "Computer"),
    ("web_player windows 10;chrome 96.0.4664.110;desktop", "Computer"),
    ("Partner google cast_tv", "Unknown"),
    ("", "Unknown"),
    (None, "Unknown"),
    (pd.NA, "Unknown"),
])
def test_classify_device(platform, expected):
    assert classify_device(platform) == expected


def test_device_rules_first_match_wins():
    """A platform naming both a phone and a desktop OS goes to the rule listed first."""
    assert classify_device("Windows app for Android") == "Phone"


def test_unmatched_reason_falls_back():
    assert classify_reason("clickrow", START_REASONS) == "Selected"
    assert classify_reason("fwdbtn", END_REASONS) == "Skipped"
    assert classify_reason("something-new", END_REASONS) == "Other"
    assert classify_reason(None, START_REASONS) == "Other"


def test_calendar_fields_use_local_time(make_events):
    events = make_events([play("2023-01-01T23:30:00Z")], timezone="Europe/Berlin")
    row = events.iloc[0]

    assert row["date"] == pd.Timestamp("2023-01-02")
    assert (row["year"], row["month"], row["day"], row["hour"], row["day_of_year"]) == (2023, 1, 2, 0, 2)
    assert row["weekday"] == 1
    assert row["weekday_name"] == "Monday"


def test_week_start_moves_weekday_numbering(make_events):
    monday = play("2023-01-02T12:00:00Z")
    sunday = play("2023-01-08T12:00:00Z")
    events = make_events([monday, sunday], week_start=6)

    assert list(events["weekday"]) == [2, 1]
    assert list(events["weekday_name"].cat.categories)[0] == "Sunday"


def test_derived_columns(make_events):
    recs = [
        play("2023-05-01T10:00:00Z", ms=1_800_000, platform="iOS 16", reason_start="fwdbtn", reason_end="bogus"),
        play("2023-05-01T11:00:00Z", platform=None, reason_start=None),
    ]
    recs[0]["release_date"] = "1999-05-01"
    recs[1]["release_date"] = None
    events = make_events(recs)

    assert list(events["device"]) == ["Phone", "Unknown"]
    assert list(events["start_category"]) == ["Skipped to", "Other"]
    assert list(events["end_category"]) == ["Other", "Finished"]
    assert events.loc[0, "release_year"] == 1999
    assert pd.isna(events.loc[1, "release_year"])
    assert events.loc[0, "hours"] == pytest.approx(0.5)


def test_normalize_is_idempotent(make_events):
    recs = [play(f"2023-03-{d:02d}T{d:02d}:00:00Z", platform=p)
            for d, p in zip(range(1, 6), ["iOS 15", "Windows 10", None, "cast_tv", "Linux"])]
    once = make_events(recs, timezone="America/New_York", week_start=3)
    twice = normalize_events(once, "America/New_York", 3)

    pd.testing.assert_frame_equal(once, twice)


def test_missing_optional_columns_are_filled(make_events):
    raw = pd.DataFrame({
        "ts": pd.to_datetime(["2023-01-01T00:00:00Z"], utc=True),
        "track": pd.array(["T"], dtype="string"),
        "artist": pd.array(["A"], dtype="string"),
        "ms_played": pd.array([1000], dtype="Int64"),
    })
    events = normalize_events(raw)

    assert events.loc[0, "device"] == "Unknown"
    assert events.loc[0, "start_category"] == "Other"
    assert events["shuffle"].dtype == "boolean"
    assert pd.isna(events.loc[0, "shuffle"])
