# analysis/views.py
"""Named report tables built from the normalized event table.

Every view is a pure function of its inputs and the run config; nothing here
reads files or mutates the tables it is given.
"""
import logging

import numpy as np
import pandas as pd

from analysis.aggregate import (
    aggregate, calendar_layout, calendar_scaffold, explode_artists, scaffold_join, share_within, top_n,
)

logger = logging.getLogger(__name__)

PLAYS = (None, "count")
HOURS = ("hours", "sum")
MODE_LABELS = {
    "shuffle": ("Shuffle", "In order"),
    "incognito_mode": ("Incognito", "Normal"),
    "offline": ("Offline", "Online"),
}
UNKNOWN = "Unknown"


def recent(events: pd.DataFrame, min_year=None) -> pd.DataFrame:
    if min_year is None:
        return events
    return events[events["year"] >= min_year]


def music_only(events: pd.DataFrame) -> pd.DataFrame:
    """Plays of a track (podcast episodes have no track name)."""
    return events[events["track"].notna()]


def flag_label(flag: pd.Series, labels) -> pd.Series:
    on, off = labels
    return flag.astype("boolean").map({True: on, False: off}).astype(object).fillna(UNKNOWN).astype("string")


# ---------------------- SUMMARY ----------------------
# `artist_credits` counts distinct artist strings as exported ("Beta, Gamma" is one
# credit); the artist tables count the split names instead.
def overview(events: pd.DataFrame) -> pd.DataFrame:
    out = aggregate(events, [], {
        "plays": PLAYS,
        "hours": HOURS,
        "tracks": ("track", "nunique"),
        "artist_credits": ("artist", "nunique"),
        "days_listened": ("date", "nunique"),
    })
    out["first_play"] = events["ts"].min()
    out["last_play"] = events["ts"].max()
    return out

def yearly_summary(events: pd.DataFrame) -> pd.DataFrame:
    out = aggregate(events, ["year"], {
        "plays": PLAYS,
        "hours": HOURS,
        "tracks": ("track", "nunique"),
        "artist_credits": ("artist", "nunique"),
        "days_listened": ("date", "nunique"),
    })
    return share_within(out, "hours", [], "share_of_hours")

def device_by_year(events: pd.DataFrame) -> pd.DataFrame:
    out = aggregate(events, ["year", "device"], {"plays": PLAYS, "hours": HOURS})
    out["device"] = out["device"].astype("string")
    return share_within(out, "plays", ["year"], "share_of_plays")


# ---------------------- TOP LISTS ----------------------
def artist_totals(exploded: pd.DataFrame, by=()) -> pd.DataFrame:
    named = exploded[exploded["artist"].notna()]
    return aggregate(named, list(by) + ["artist"], {
        "plays": PLAYS,
        "hours": HOURS,
        "tracks": ("track", "nunique"),
    })

def top_artists(events: pd.DataFrame, config) -> pd.DataFrame:
    exploded = explode_artists(music_only(events), config.artist_delimiter, config.max_artists)
    totals = artist_totals(exploded)
    return top_n(totals, "hours", config.top_n, tie_break=["artist"])

def top_artists_by_year(events: pd.DataFrame, config) -> pd.DataFrame:
    exploded = explode_artists(music_only(recent(events, config.min_year)), config.artist_delimiter, config.max_artists)
    totals = artist_totals(exploded, by=["year"])
    return top_n(totals, "hours", config.top_n, by=["year"], tie_break=["artist"])

def track_totals(events: pd.DataFrame, by=()) -> pd.DataFrame:
    return aggregate(music_only(events), list(by) + ["track", "artist"], {"plays": PLAYS, "hours": HOURS})

def top_tracks(events: pd.DataFrame, config) -> pd.DataFrame:
    return top_n(track_totals(events), "plays", config.top_n, tie_break=["track", "artist"])

def top_tracks_by_year(events: pd.DataFrame, config) -> pd.DataFrame:
    totals = track_totals(recent(events, config.min_year), by=["year"])
    return top_n(totals, "plays", config.top_n, by=["year"], tie_break=["track", "artist"])


# ---------------------- PLAYBACK MODES ----------------------
def playback_modes(events: pd.DataFrame) -> pd.DataFrame:
    """Per year, the proportion of plays in each playback mode (unknown flags skipped)."""
    return aggregate(events, ["year"], {
        "plays": PLAYS,
        "shuffle_share": ("shuffle", "proportion"),
        "incognito_share": ("incognito_mode", "proportion"),
        "offline_share": ("offline", "proportion"),
        "skipped_share": ("skipped", "proportion"),
    })

def mode_by_year(events: pd.DataFrame, flag: str) -> pd.DataFrame:
    state = f"{flag}_state"
    work = events.assign(**{state: flag_label(events[flag], MODE_LABELS[flag])})
    out = aggregate(work, ["year", state], {"plays": PLAYS, "hours": HOURS})
    return share_within(out, "plays", ["year"], "share_of_plays")

def reason_breakdown(events: pd.DataFrame, column: str) -> pd.DataFrame:
    out = aggregate(events, ["year", column], {"plays": PLAYS, "hours": HOURS})
    return share_within(out, "plays", ["year"], "share_of_plays")


# ---------------------- CALENDAR ----------------------
def daily_calendar(events: pd.DataFrame, config) -> pd.DataFrame:
    """Hours and plays for every day between the first and last play, silent days included."""
    if events.empty:
        return pd.DataFrame(columns=["date", "plays", "hours", "year", "month", "day_of_year", "weekday", "week_row"])
    per_day = aggregate(events, ["date"], {"plays": PLAYS, "hours": HOURS})
    scaffold = calendar_scaffold(events["date"].min(), events["date"].max(), freq="D")
    days = scaffold_join(scaffold, per_day, on=["date"])
    return calendar_layout(days, config.week_start)

def hourly_calendar(events: pd.DataFrame) -> pd.DataFrame:
    if events.empty:
        return pd.DataFrame(columns=["date", "hour", "plays", "hours"])
    per_hour = aggregate(events, ["date", "hour"], {"plays": PLAYS, "hours": HOURS})
    scaffold = calendar_scaffold(events["date"].min(), events["date"].max(), freq="h")
    return scaffold_join(scaffold, per_hour, on=["date", "hour"])

def weekday_hour(hourly: pd.DataFrame, config) -> pd.DataFrame:
    """Average hours listened in each weekday x hour slot across the scaffolded range."""
    if hourly.empty:
        return pd.DataFrame(columns=["weekday", "hour", "days", "plays", "mean_hours"])
    laid = calendar_layout(hourly, config.week_start)
    return (laid.groupby(["weekday", "hour"], as_index=False)
                .agg(days=("date", "nunique"), plays=("plays", "sum"), mean_hours=("hours", "mean")))


# ---------------------- ARTIST DENSITY ----------------------
def artist_density(events: pd.DataFrame, config) -> pd.DataFrame:
    """How spread out listening is per year once the primary artist is taken out.

    tracks_per_artist divides distinct tracks by distinct artists of the same
    year; top_artist_share is the leading artist's hours over that year's hours.
    """
    exploded = explode_artists(music_only(recent(events, config.min_year)), config.artist_delimiter, config.max_artists)
    exploded = exploded[exploded["artist"].notna()]
    if config.primary_artist:
        exploded = exploded[exploded["artist"] != config.primary_artist]

    per_year = aggregate(exploded, ["year"], {
        "artists": ("artist", "nunique"),
        "tracks": ("track", "nunique"),
        "hours": HOURS,
    })
    per_year["tracks_per_artist"] = per_year["tracks"] / per_year["artists"].replace(0, np.nan)

    leaders = top_n(artist_totals(exploded, by=["year"]), "hours", 1, by=["year"], tie_break=["artist"])
    leaders = leaders[["year", "artist", "hours"]].rename(columns={"artist": "top_artist", "hours": "top_artist_hours"})
    out = per_year.merge(leaders, on="year", how="left")
    out["top_artist_share"] = out["top_artist_hours"] / out["hours"].replace(0, np.nan)
    return out


def release_years(events: pd.DataFrame) -> pd.DataFrame:
    dated = events[events["release_year"].notna()]
    out = aggregate(dated, ["release_year"], {"plays": PLAYS, "hours": HOURS})
    return share_within(out, "hours", [], "share_of_hours")


# ---------------------- PLAYLISTS & LIBRARY ----------------------
# Membership is matched on (track, artist) names; there is no stable id in the
# exports, so two different songs with the same names count as one.
KEYS = ["track", "artist"]

def played_tracks(history: pd.DataFrame) -> pd.DataFrame:
    return aggregate(music_only(history), KEYS, {"plays": PLAYS, "hours": HOURS})

def resolve_adders(playlists: pd.DataFrame, aliases=None) -> pd.DataFrame:
    out = playlists.copy()
    if aliases is None or aliases.empty:
        out["added_by_name"] = out["added_by"]
        return out
    out = out.merge(aliases.rename(columns={"user_id": "added_by"}), on="added_by", how="left")
    out["added_by_name"] = out["display_name"].fillna(out["added_by"])
    return out.drop(columns="display_name")

def playlist_history(playlists: pd.DataFrame, history: pd.DataFrame, aliases=None) -> pd.DataFrame:
    """Every playlist entry with how often it shows up in the listening history."""
    out = resolve_adders(playlists, aliases)
    out = scaffold_join(out, played_tracks(history), on=KEYS)
    out["played"] = out["plays"] > 0
    return out

def playlist_overview(playlists: pd.DataFrame, history: pd.DataFrame, library=None, aliases=None) -> pd.DataFrame:
    entries = playlist_history(playlists, history, aliases)
    if library is not None:
        saved = library[KEYS].drop_duplicates().assign(saved=True)
        entries = entries.merge(saved, on=KEYS, how="left")
        entries["saved"] = entries["saved"].eq(True)
    measures = {
        "tracks": PLAYS,
        "artist_credits": ("artist", "nunique"),
        "adders": ("added_by_name", "nunique"),
        "played_share": ("played", "proportion"),
        "plays": ("plays", "sum"),
        "hours": ("hours", "sum"),
    }
    if library is not None:
        measures["saved_share"] = ("saved", "proportion")
    return aggregate(entries, ["playlist"], measures)

def library_tracks(library: pd.DataFrame, history: pd.DataFrame) -> pd.DataFrame:
    out = scaffold_join(library.drop_duplicates(KEYS), played_tracks(history), on=KEYS)
    return out.sort_values(["plays", "track", "artist"], ascending=[False, True, True]).reset_index(drop=True)

def library_coverage(library_plays: pd.DataFrame) -> pd.DataFrame:
    played = library_plays["plays"] > 0
    return pd.DataFrame([{
        "saved_tracks": len(library_plays),
        "played_tracks": int(played.sum()),
        "played_share": float(played.mean()) if len(library_plays) else 0.0,
        "hours_on_saved": float(library_plays["hours"].sum()),
    }])


def build_views(events: pd.DataFrame, config, playlists=None, library=None, aliases=None, history=None) -> dict:
    """All report tables, in report order. `history` defaults to `events`."""
    history = events if history is None else history
    views = {
        "overview": overview(events),
        "yearly_summary": yearly_summary(events),
        "device_by_year": device_by_year(events),
        "top_artists": top_artists(events, config),
        "top_artists_by_year": top_artists_by_year(events, config),
        "top_tracks": top_tracks(events, config),
        "top_tracks_by_year": top_tracks_by_year(events, config),
        "playback_modes": playback_modes(events),
        "shuffle_by_year": mode_by_year(events, "shuffle"),
        "incognito_by_year": mode_by_year(events, "incognito_mode"),
        "start_reasons": reason_breakdown(events, "start_category"),
        "end_reasons": reason_breakdown(events, "end_category"),
        "daily_calendar": daily_calendar(events, config),
    }
    hourly = hourly_calendar(events)
    views["hourly_calendar"] = hourly
    views["weekday_hour"] = weekday_hour(hourly, config)
    views["artist_density"] = artist_density(events, config)

    years = release_years(events)
    if not years.empty:
        views["release_years"] = years

    if playlists is not None:
        views["playlist_overview"] = playlist_overview(playlists, history, library, aliases)
        views["playlist_history"] = playlist_history(playlists, history, aliases)
    if library is not None:
        lib = library_tracks(library, history)
        views["library_tracks"] = lib
        views["library_coverage"] = library_coverage(lib)

    logger.info("Built %s report tables", len(views))
    return views
