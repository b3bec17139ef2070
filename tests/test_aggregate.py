import pandas as pd
import pytest

from analysis.aggregate import (
    aggregate, calendar_layout, calendar_scaffold, explode_artists, scaffold_join, share_within, top_n,
)

from conftest import month_plays, play


@pytest.fixture
def events(make_events):
    recs = month_plays(2023, 1, 40) + month_plays(2024, 3, 25)
    recs.append(play("2024-03-05T10:00:00Z", artist=None, track=None, platform=None))
    return make_events(recs)


@pytest.mark.parametrize("by", [["year"], ["device"], ["artist"], ["date", "hour"], ["year", "shuffle"], []])
def test_counts_add_up_to_event_count(events, by):
    out = aggregate(events, by, {"plays": (None, "count")})
    assert out["plays"].sum() == len(events)


def test_missing_keys_form_their_own_group(events):
    out = aggregate(events, ["artist"], {"plays": (None, "count")})
    assert out["artist"].isna().sum() == 1
    assert int(out.loc[out["artist"].isna(), "plays"].iloc[0]) == 1


def test_measures(events):
    out = aggregate(events, ["year"], {
        "plays": (None, "count"),
        "hours": ("hours", "sum"),
        "tracks": ("track", "nunique"),
        "shuffle_rate": ("shuffle", "proportion"),
    })

    assert list(out["year"]) == [2023, 2024]
    assert list(out["plays"]) == [40, 26]
    assert out.loc[0, "hours"] == pytest.approx(40 * 180_000 / 3_600_000)
    assert out.loc[0, "tracks"] == 7
    assert out.loc[0, "shuffle_rate"] == pytest.approx(0.5)


def test_unknown_reducer(events):
    with pytest.raises(ValueError):
        aggregate(events, ["year"], {"x": ("hours", "median")})


def test_share_within_scope_sums_to_one(events):
    out = aggregate(events, ["year", "device"], {"plays": (None, "count")})
    out = share_within(out, "plays", ["year"])
    assert out.groupby("year")["share"].sum().tolist() == pytest.approx([1.0, 1.0])


def test_share_of_zero_total_is_zero():
    out = share_within(pd.DataFrame({"g": ["a", "a"], "v": [0, 0]}), "v", ["g"])
    assert out["share"].tolist() == [0.0, 0.0]


def test_explode_counts_each_artist(make_events):
    events = make_events([
        play("2023-01-01T10:00:00Z", artist="Solo"),
        play("2023-01-01T11:00:00Z", artist="Beta, Gamma"),
        play("2023-01-01T12:00:00Z", artist="A, B, C, D, E"),
    ])

    exploded = explode_artists(events, ", ", max_artists=4)

    assert len(exploded) >= len(events)
    assert exploded.groupby("event_id").size().tolist() == [1, 2, 4]
    assert "E" not in set(exploded["artist"])
    assert exploded.loc[exploded["event_id"] == 1, "artist_slot"].tolist() == [1, 2]


def test_explode_single_artists_is_lossless(make_events):
    events = make_events([play(f"2023-01-0{d}T10:00:00Z", artist=a) for d, a in [(1, "X"), (2, "Y"), (3, None)]])

    exploded = explode_artists(events)

    assert len(exploded) == len(events)
    assert exploded["hours"].sum() == pytest.approx(events["hours"].sum())


def test_top_n_ties_are_deterministic():
    df = pd.DataFrame({"artist": ["b", "c", "a", "d"], "plays": [5, 5, 5, 9]})

    first = top_n(df, "plays", 2, tie_break=["artist"])
    again = top_n(df.sample(frac=1, random_state=1), "plays", 2, tie_break=["artist"])

    assert first["artist"].tolist() == ["d", "a"]
    pd.testing.assert_frame_equal(first, again)
    assert first["rank"].tolist() == [1, 2]


def test_top_n_per_group():
    df = pd.DataFrame({
        "year": [2023, 2023, 2023, 2024, 2024],
        "artist": ["a", "b", "c", "a", "b"],
        "plays": [1, 3, 2, 7, 7],
    })

    out = top_n(df, "plays", 2, by=["year"], tie_break=["artist"])

    assert list(zip(out["year"], out["artist"], out["rank"])) == [
        (2023, "b", 1), (2023, "c", 2), (2024, "a", 1), (2024, "b", 2),
    ]


def test_scaffold_fills_gaps_with_zero(make_events):
    events = make_events([play("2023-01-01T10:00:00Z"), play("2023-01-10T10:00:00Z")] * 2)
    daily = aggregate(events, ["date"], {"plays": (None, "count"), "hours": ("hours", "sum")})

    out = scaffold_join(calendar_scaffold(events["date"].min(), events["date"].max()), daily, ["date"])

    assert len(out) == 10
    assert out["date"].is_unique
    assert out["plays"].tolist() == [2] + [0] * 8 + [2]
    assert out["plays"].dtype == daily["plays"].dtype
    assert (out["hours"] >= 0).all()


def test_hourly_scaffold():
    out = calendar_scaffold("2023-01-01", "2023-01-02 17:00", freq="h")
    assert len(out) == 48
    assert not out.duplicated().any()


@pytest.mark.parametrize("week_start, dates, expected", [
    # 2024-01-01 is a Monday
    (0, ["2024-01-01", "2024-01-07", "2024-01-08"], [(1, 1), (7, 1), (1, 2)]),
    # 2023-01-01 is a Sunday
    (0, ["2023-01-01", "2023-01-02"], [(7, 1), (1, 2)]),
    (6, ["2023-01-01", "2023-01-07", "2023-01-08"], [(1, 1), (7, 1), (1, 2)]),
])
def test_calendar_layout(week_start, dates, expected):
    out = calendar_layout(pd.DataFrame({"date": pd.to_datetime(dates)}), week_start)
    assert list(zip(out["weekday"], out["week_row"])) == expected


def test_calendar_cells_are_unique_over_a_year():
    year = calendar_scaffold("2024-01-01", "2024-12-31")
    out = calendar_layout(year)
    assert not out.duplicated(["year", "week_row", "weekday"]).any()
    assert out["week_row"].max() <= 54
