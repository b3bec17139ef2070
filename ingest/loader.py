# ingest/loader.py
import csv
import json
import logging
from pathlib import Path

import pandas as pd

from ingest.schema import ALIAS_SCHEMA, EVENT_SCHEMA, LIBRARY_SCHEMA, PLAYLIST_SCHEMA, validate_frame
from utils.errors import MalformedRecordError, MissingInputError

logger = logging.getLogger(__name__)

JSON_SUFFIXES = {".json", ".jsonl", ".ndjson"}


def discover_files(directory, pattern):
    directory = Path(directory)
    files = sorted(p for p in directory.glob(pattern) if p.is_file())
    if not files:
        raise MissingInputError(pattern, directory)
    return files


def _read_text(path: Path) -> str:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except UnicodeDecodeError as e:
        raise MalformedRecordError(path, f"not UTF-8 text ({e})") from e


def _read_json_records(path: Path) -> pd.DataFrame:
    text = _read_text(path)
    body = text.lstrip()
    if not body:
        raise MalformedRecordError(path, "file is empty")

    try:
        if body.startswith("["):
            records = json.loads(body)
        else:
            # newline-delimited JSON: one object per line
            records = [json.loads(line) for line in body.splitlines() if line.strip()]
    except json.JSONDecodeError as e:
        raise MalformedRecordError(path, f"invalid JSON ({e})") from e

    if not all(isinstance(r, dict) for r in records):
        raise MalformedRecordError(path, "expected a list of JSON objects")
    return pd.DataFrame.from_records(records) if records else pd.DataFrame()


def read_records(path) -> pd.DataFrame:
    """Parse one export file (JSON array, NDJSON or CSV) into a raw frame."""
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix in JSON_SUFFIXES:
        return _read_json_records(path)
    if suffix == ".csv":
        try:
            return pd.read_csv(path)
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            raise MalformedRecordError(path, f"invalid CSV ({e})") from e
    raise MalformedRecordError(path, f"unsupported file type '{suffix}'")


def load_events(directory, patterns) -> pd.DataFrame:
    """Merge every history file matched by `patterns` into one event table.

    Every pattern has to match at least one file; that is checked for all
    patterns before any file is parsed. Files are merged by full outer union,
    so a column present in only some files is kept and filled with NA elsewhere.
    """
    files = []
    for pattern in patterns:
        for p in discover_files(directory, pattern):
            if p not in files:
                files.append(p)

    frames = []
    for p in files:
        raw = read_records(p)
        df = validate_frame(raw, EVENT_SCHEMA, p)
        df["source_file"] = p.name
        logger.info("Loaded %s events from %s", f"{len(df):,}", p.name)
        frames.append(df)

    events = pd.concat(frames, ignore_index=True, sort=False)
    # stable: ties keep file order, then row order
    events = events.sort_values("ts", kind="mergesort").reset_index(drop=True)
    logger.info("Event table: %s rows from %s file(s)", f"{len(events):,}", len(files))
    return events


def load_event_csv(path) -> pd.DataFrame:
    path = Path(path)
    if not path.is_file():
        raise MissingInputError(path.name, path.parent)
    return validate_frame(read_records(path), EVENT_SCHEMA, path)


def _read_json_document(path: Path):
    if not path.is_file():
        raise MissingInputError(path.name, path.parent)
    text = _read_text(path)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedRecordError(path, f"invalid JSON ({e})") from e


def load_playlists(path) -> pd.DataFrame:
    """One row per track item of every playlist in a Playlist export file.

    Podcast episodes and local files have no `track` object and are skipped.
    """
    path = Path(path)
    doc = _read_json_document(path)
    playlists = doc.get("playlists") if isinstance(doc, dict) else None
    if not isinstance(playlists, list):
        raise MalformedRecordError(path, "expected an object with a 'playlists' list")

    rows = []
    for pl in playlists:
        if not isinstance(pl, dict) or "name" not in pl:
            raise MalformedRecordError(path, "playlist entry without a name")
        for item in pl.get("items") or []:
            track = item.get("track")
            if not track:
                continue
            rows.append({
                "playlist": pl["name"],
                "track": track.get("trackName"),
                "artist": track.get("artistName"),
                "album": track.get("albumName"),
                "added_at": item.get("addedDate"),
                "added_by": item.get("addedBy"),
            })

    df = pd.DataFrame(rows, columns=["playlist", "track", "artist", "album", "added_at", "added_by"])
    df = validate_frame(df, PLAYLIST_SCHEMA, path)
    logger.info("Loaded %s playlist entries across %s playlists", len(df), len(playlists))
    return df


def load_library(path) -> pd.DataFrame:
    path = Path(path)
    doc = _read_json_document(path)
    tracks = doc.get("tracks") if isinstance(doc, dict) else None
    if not isinstance(tracks, list):
        raise MalformedRecordError(path, "expected an object with a 'tracks' list")
    raw = pd.DataFrame.from_records(tracks) if tracks else pd.DataFrame()
    df = validate_frame(raw, LIBRARY_SCHEMA, path)
    logger.info("Loaded %s saved tracks", len(df))
    return df


def load_user_aliases(path) -> pd.DataFrame:
    """Two-column delimited text, user id then display name. A header row is optional."""
    path = Path(path)
    if not path.is_file():
        raise MissingInputError(path.name, path.parent)
    try:
        raw = pd.read_csv(path, sep=None, engine="python", header=None, dtype=str,
                          usecols=[0, 1], names=["user_id", "display_name"])
    except (csv.Error, pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as e:
        raise MalformedRecordError(path, f"invalid alias table ({e})") from e

    if len(raw) and str(raw.iloc[0]["user_id"]).strip().lower() == "user_id":
        raw = raw.iloc[1:]
    raw = raw.apply(lambda s: s.str.strip())

    df = validate_frame(raw.reset_index(drop=True), ALIAS_SCHEMA, path)
    dupes = df["user_id"].duplicated()
    if dupes.any():
        logger.warning("%s duplicate user id(s) in %s, keeping the first name", int(dupes.sum()), path.name)
        df = df[~dupes].reset_index(drop=True)
    return df
