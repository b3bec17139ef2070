# report/charts.py
from dataclasses import dataclass
from typing import Optional

import altair as alt
import pandas as pd

# calendars for long histories go past altair's 5000-row default
alt.data_transformers.disable_max_rows()

MARKS = {
    "bar": lambda c: c.mark_bar(),
    "line": lambda c: c.mark_line(point=True),
    "rect": lambda c: c.mark_rect(),
    "area": lambda c: c.mark_area(opacity=0.85),
}


@dataclass(frozen=True)
class ChartSpec:
    """Which view to draw and how its columns map to visual channels (altair shorthand)."""
    name: str
    view: str
    mark: str
    x: str
    y: str
    title: str = ""
    color: Optional[str] = None
    row: Optional[str] = None
    column: Optional[str] = None
    tooltip: tuple = ()
    sort_y: Optional[str] = None
    independent_y: bool = False
    height: int = 300

    def fields(self):
        shorthand = [self.x, self.y, self.color, self.row, self.column, *self.tooltip]
        return list(dict.fromkeys(s.split(":")[0] for s in shorthand if s))


def plain_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Nullable pandas dtypes -> float64 / object with None, which vega-lite serialization expects."""
    out = df.copy()
    for c in out.columns:
        dtype = out[c].dtype
        if not isinstance(dtype, pd.api.extensions.ExtensionDtype):
            continue
        if isinstance(dtype, (pd.CategoricalDtype, pd.DatetimeTZDtype)):
            continue
        if pd.api.types.is_numeric_dtype(dtype) and not pd.api.types.is_bool_dtype(dtype):
            out[c] = out[c].astype("float64")
        else:
            out[c] = out[c].astype(object).where(out[c].notna(), None)
    return out


def build_chart(df: pd.DataFrame, spec: ChartSpec) -> alt.Chart:
    if spec.mark not in MARKS:
        raise ValueError(f"Unknown mark {spec.mark!r} for chart {spec.name!r}")
    data = plain_columns(df[spec.fields()])

    enc = {
        "x": spec.x,
        "y": alt.Y(spec.y, sort=spec.sort_y) if spec.sort_y else spec.y,
    }
    if spec.color:  enc["color"] = spec.color
    if spec.row:    enc["row"] = spec.row
    if spec.column: enc["column"] = spec.column
    if spec.tooltip:
        enc["tooltip"] = list(spec.tooltip)

    chart = MARKS[spec.mark](alt.Chart(data)).encode(**enc).properties(height=spec.height)
    if spec.title:
        chart = chart.properties(title=spec.title)
    if spec.independent_y:
        chart = chart.resolve_scale(y="independent")
    return chart


# ---- Standard report charts ----
STANDARD_CHARTS = [
    ChartSpec("yearly_hours", "yearly_summary", "bar", "year:O", "hours:Q",
              title="Hours listened per year", tooltip=("year:O", "hours:Q", "plays:Q")),
    ChartSpec("device_share", "device_by_year", "bar", "year:O", "share_of_plays:Q",
              title="Plays by device", color="device:N", tooltip=("year:O", "device:N", "plays:Q")),
    ChartSpec("top_artists", "top_artists", "bar", "hours:Q", "artist:N",
              title="Top artists (hours)", sort_y="-x", tooltip=("artist:N", "hours:Q", "plays:Q")),
    ChartSpec("top_artists_by_year", "top_artists_by_year", "bar", "hours:Q", "artist:N",
              title="Top artists by year", sort_y="-x", row="year:O", independent_y=True, height=160),
    ChartSpec("top_tracks", "top_tracks", "bar", "plays:Q", "track:N",
              title="Top tracks (plays)", sort_y="-x", tooltip=("track:N", "artist:N", "plays:Q")),
    ChartSpec("shuffle_by_year", "shuffle_by_year", "bar", "year:O", "share_of_plays:Q",
              title="Shuffle", color="shuffle_state:N", tooltip=("year:O", "shuffle_state:N", "plays:Q")),
    ChartSpec("incognito_by_year", "incognito_by_year", "bar", "year:O", "share_of_plays:Q",
              title="Private sessions", color="incognito_mode_state:N"),
    ChartSpec("start_reasons", "start_reasons", "bar", "year:O", "share_of_plays:Q",
              title="Why a track started", color="start_category:N"),
    ChartSpec("end_reasons", "end_reasons", "bar", "year:O", "share_of_plays:Q",
              title="Why a track ended", color="end_category:N"),
    ChartSpec("daily_calendar", "daily_calendar", "rect", "week_row:O", "weekday:O",
              title="Daily listening", color="hours:Q", row="year:O", height=120,
              tooltip=("date:T", "hours:Q", "plays:Q")),
    ChartSpec("weekday_hour", "weekday_hour", "rect", "hour:O", "weekday:O",
              title="Average hours by weekday and hour", color="mean_hours:Q", height=220),
    ChartSpec("artist_density", "artist_density", "line", "year:O", "tracks_per_artist:Q",
              title="Distinct tracks per artist", tooltip=("year:O", "artists:Q", "tracks:Q", "top_artist:N")),
    ChartSpec("release_years", "release_years", "bar", "release_year:O", "hours:Q",
              title="Hours by release year"),
    ChartSpec("playlist_played_share", "playlist_overview", "bar", "played_share:Q", "playlist:N",
              title="Share of playlist tracks found in the history", sort_y="-x"),
]


def default_charts(views: dict) -> list:
    """Standard chart specs whose view exists and has rows."""
    return [s for s in STANDARD_CHARTS if s.view in views and not views[s.view].empty]
