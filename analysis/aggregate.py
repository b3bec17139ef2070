# analysis/aggregate.py
import logging

import numpy as np
import pandas as pd

from prep.normalize import weekday_number

logger = logging.getLogger(__name__)

# measure reducer -> pandas named-aggregation function
REDUCERS = {
    "count": "size",
    "sum": "sum",
    "nunique": "nunique",
    "proportion": "mean",
}


def aggregate(df: pd.DataFrame, by, measures: dict) -> pd.DataFrame:
    """One row per combination of `by` values present in `df`.

    `measures` maps an output name to (column, reducer). `count` ignores the
    column, `proportion` is the mean of a boolean column (NA skipped).
    Missing key values form their own group, so counts always add up to len(df).
    """
    by = list(by)
    work = df.copy()
    if not by:
        work["__all"] = 0
        keys = ["__all"]
    else:
        keys = by

    named = {}
    for out, (col, reducer) in measures.items():
        if reducer not in REDUCERS:
            raise ValueError(f"Unknown reducer {reducer!r} for measure {out!r}")
        if reducer == "count":
            work["__row"] = 1
            col = "__row"
        elif reducer == "proportion":
            tmp = f"__{out}"
            work[tmp] = work[col].astype("boolean").astype("Float64")
            col = tmp
        named[out] = (col, REDUCERS[reducer])

    out = (work.groupby(keys, dropna=False, observed=True, sort=True)
               .agg(**named)
               .reset_index())
    if not by:
        out = out.drop(columns="__all")
    return out


def share_within(df: pd.DataFrame, measure: str, scope=(), name: str = "share") -> pd.DataFrame:
    """Add `name` = measure / total of measure over the same `scope` groups."""
    out = df.copy()
    scope = list(scope)
    if scope:
        total = out.groupby(scope, dropna=False, observed=True)[measure].transform("sum")
    else:
        total = pd.Series(out[measure].sum(), index=out.index)
    share = out[measure].astype("float64") / total.astype("float64")
    out[name] = share.where(total != 0, 0.0)
    return out


def top_n(df: pd.DataFrame, measure: str, n: int, by=None, tie_break=None) -> pd.DataFrame:
    """Top `n` rows by `measure` (descending), per `by` group when given.

    Ties are broken by `tie_break` columns ascending and then by the row's
    position in `df`, so the cut at the Nth row is the same on every run.
    Adds a 1-based `rank` column.
    """
    by = list(by or [])
    tie_break = list(tie_break or [])
    ranked = df.reset_index(drop=True)
    ranked["__pos"] = np.arange(len(ranked))

    keys = by + [measure] + tie_break + ["__pos"]
    ascending = [True] * len(by) + [False] + [True] * len(tie_break) + [True]
    ranked = ranked.sort_values(keys, ascending=ascending, na_position="last")

    if by:
        ranked["rank"] = ranked.groupby(by, dropna=False, observed=True).cumcount() + 1
    else:
        ranked["rank"] = np.arange(1, len(ranked) + 1)

    return (ranked[ranked["rank"] <= n]
            .drop(columns="__pos")
            .reset_index(drop=True))


def explode_artists(df: pd.DataFrame, delimiter: str = ", ", max_artists: int = 4) -> pd.DataFrame:
    """One row per credited artist instead of one row per play.

    The artist string is split on `delimiter` into at most `max_artists`
    names; names past that are dropped. Plays without an artist keep a single
    row with an empty artist. Adds `event_id` (row of the input) and `artist_slot`.
    """
    out = df.reset_index(drop=True)
    out.insert(0, "event_id", np.arange(len(out)))

    def split(value):
        if not isinstance(value, str):
            return [pd.NA]
        names = [p.strip() for p in value.split(delimiter) if p.strip()]
        return names or [pd.NA]

    parts = out["artist"].astype(object).map(split)
    dropped = int(parts.map(lambda xs: max(len(xs) - max_artists, 0)).sum())
    if dropped:
        logger.warning("Dropped %s artist credit(s) beyond %s per play", dropped, max_artists)

    out["artist"] = parts.map(lambda xs: xs[:max_artists])
    out = out.explode("artist", ignore_index=True)
    out["artist"] = out["artist"].astype("string")
    out["artist_slot"] = out.groupby("event_id").cumcount() + 1
    return out


def calendar_scaffold(start, end, freq: str = "D") -> pd.DataFrame:
    """Every day (freq="D") or every (day, hour) (freq="h") from start to end, inclusive."""
    days = pd.date_range(pd.Timestamp(start).normalize(), pd.Timestamp(end).normalize(), freq="D")
    if freq == "D":
        return pd.DataFrame({"date": days})
    if freq == "h":
        return pd.MultiIndex.from_product([days, range(24)], names=["date", "hour"]).to_frame(index=False)
    raise ValueError(f"Unsupported scaffold frequency {freq!r}")


def calendar_layout(df: pd.DataFrame, week_start: int = 0, date_col: str = "date") -> pd.DataFrame:
    """Wall-calendar position of each date: weekday column (1-7) and week row within its year.

    week_row = ceil((weekday offset of Jan 1 + day of year) / 7)
    """
    out = df.copy()
    d = pd.to_datetime(out[date_col])
    out["year"] = d.dt.year.astype("int64")
    out["month"] = d.dt.month.astype("int64")
    out["day_of_year"] = d.dt.dayofyear.astype("int64")
    out["weekday"] = weekday_number(d.dt.dayofweek, week_start).astype("int64")

    jan1 = pd.to_datetime(pd.DataFrame({"year": out["year"], "month": 1, "day": 1}))
    offset = weekday_number(jan1.dt.dayofweek, week_start) - 1
    out["week_row"] = np.ceil((offset + out["day_of_year"]) / 7).astype("int64")
    return out


def scaffold_join(scaffold: pd.DataFrame, agg: pd.DataFrame, on, fill_value=0) -> pd.DataFrame:
    """Left-join aggregates onto a scaffold; measures missing for a key become `fill_value`."""
    on = list(on)
    out = scaffold.merge(agg, on=on, how="left")
    for c in agg.columns:
        if c in on:
            continue
        filled = out[c].fillna(fill_value)
        if pd.api.types.is_integer_dtype(agg[c].dtype):
            filled = filled.astype(agg[c].dtype)
        out[c] = filled
    return out
