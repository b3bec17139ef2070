# ingest/schema.py
from dataclasses import dataclass

import numpy as np
import pandas as pd

from utils.errors import MalformedRecordError

BOOL_TEXT = {
    "true": True, "false": False,
    "1": True, "0": False, "1.0": True, "0.0": False,
    "yes": True, "no": False,
}


@dataclass(frozen=True)
class Column:
    name: str
    kind: str                 # "datetime" | "int" | "bool" | "string"
    required: bool = False    # must be present in every file
    nullable: bool = True     # may hold the absent marker
    aliases: tuple = ()


# Extended streaming history ("Streaming_History_Audio_*.json") plus the
# older account-data format ("StreamingHistory_music_*.json") via aliases.
EVENT_SCHEMA = (
    Column("ts", "datetime", required=True, nullable=False, aliases=("endTime", "timestamp", "played_at")),
    Column("track", "string", required=True, aliases=("master_metadata_track_name", "trackName")),
    Column("artist", "string", required=True, aliases=("master_metadata_album_artist_name", "artistName")),
    Column("album", "string", aliases=("master_metadata_album_album_name", "albumName")),
    Column("ms_played", "int", required=True, nullable=False, aliases=("msPlayed",)),
    Column("platform", "string"),
    Column("shuffle", "bool"),
    Column("incognito_mode", "bool", aliases=("incognito",)),
    Column("offline", "bool"),
    Column("skipped", "bool"),
    Column("reason_start", "string"),
    Column("reason_end", "string"),
    Column("release_date", "string"),
)

PLAYLIST_SCHEMA = (
    Column("playlist", "string", required=True, nullable=False, aliases=("name",)),
    Column("track", "string", required=True, aliases=("trackName",)),
    Column("artist", "string", required=True, aliases=("artistName",)),
    Column("album", "string", aliases=("albumName",)),
    Column("added_at", "datetime", aliases=("addedDate",)),
    Column("added_by", "string", aliases=("addedBy",)),
)

LIBRARY_SCHEMA = (
    Column("track", "string", required=True),
    Column("artist", "string", required=True),
    Column("album", "string"),
)

ALIAS_SCHEMA = (
    Column("user_id", "string", required=True, nullable=False),
    Column("display_name", "string", required=True),
)


def _coerce_datetime(s: pd.Series, col: Column, source) -> pd.Series:
    try:
        if pd.api.types.is_datetime64_any_dtype(s):
            return pd.to_datetime(s, utc=True)
        return pd.to_datetime(s, utc=True, format="ISO8601")
    except (ValueError, TypeError) as e:
        raise MalformedRecordError(source, f"field '{col.name}' is not a timestamp ({e})") from e

def _coerce_int(s: pd.Series, col: Column, source) -> pd.Series:
    num = pd.to_numeric(s, errors="coerce")
    bad = num.isna() & s.notna()
    if bad.any():
        raise MalformedRecordError(source, f"field '{col.name}' has non-numeric value {s[bad].iloc[0]!r}")
    try:
        return num.astype("Int64")
    except (ValueError, TypeError) as e:
        raise MalformedRecordError(source, f"field '{col.name}' is not an integer ({e})") from e

def _coerce_bool(s: pd.Series, col: Column, source) -> pd.Series:
    def conv(v):
        if v is None or v is pd.NA or (isinstance(v, float) and np.isnan(v)):
            return pd.NA
        if isinstance(v, (bool, np.bool_)):
            return bool(v)
        key = str(v).strip().lower()
        if key in BOOL_TEXT:
            return BOOL_TEXT[key]
        raise MalformedRecordError(source, f"field '{col.name}' has non-boolean value {v!r}")
    return s.astype(object).map(conv).astype("boolean")

def _coerce_string(s: pd.Series, col: Column, source) -> pd.Series:
    return s.astype("string")

COERCE = {
    "datetime": _coerce_datetime,
    "int": _coerce_int,
    "bool": _coerce_bool,
    "string": _coerce_string,
}


def validate_frame(df: pd.DataFrame, schema, source) -> pd.DataFrame:
    """Rename aliases, check required fields and coerce every schema column to its type.

    Columns outside the schema are kept as-is after the schema columns.
    """
    df = df.copy()
    renames = {}
    for col in schema:
        if col.name in df.columns:
            continue
        for alias in col.aliases:
            if alias in df.columns:
                renames[alias] = col.name
                break
    df = df.rename(columns=renames)

    missing = [c.name for c in schema if c.required and c.name not in df.columns]
    # an empty export ("[]") has no columns at all; that is zero records, not a bad shape
    if missing and not (df.empty and len(df.columns) == 0):
        raise MalformedRecordError(source, f"missing required field(s) {missing}")

    for col in schema:
        if col.name not in df.columns:
            df[col.name] = pd.Series(pd.NA, index=df.index, dtype=object)
        df[col.name] = COERCE[col.kind](df[col.name], col, source)
        if not col.nullable and df[col.name].isna().any():
            raise MalformedRecordError(source, f"field '{col.name}' is empty in {int(df[col.name].isna().sum())} record(s)")

    names = [c.name for c in schema]
    extras = [c for c in df.columns if c not in names]
    return df[names + extras]
