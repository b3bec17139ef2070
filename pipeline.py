# pipeline.py
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import pandas as pd

from analysis.views import build_views
from ingest.loader import load_event_csv, load_events, load_library, load_playlists, load_user_aliases
from prep.normalize import normalize_events
from report.render import publish, save_table, try_write

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Inputs:
    events: pd.DataFrame
    playlists: Optional[pd.DataFrame] = None
    library: Optional[pd.DataFrame] = None
    aliases: Optional[pd.DataFrame] = None
    history: Optional[pd.DataFrame] = None


def locate(path, config) -> Path:
    """Paths that don't exist as given are looked up inside the input directory."""
    path = Path(path)
    if path.is_absolute() or path.exists():
        return path
    return config.input_dir / path


def load_inputs(config) -> Inputs:
    """Read every configured input. Any missing or unreadable file aborts the run."""
    events = load_events(config.input_dir, config.history_patterns)

    playlists = load_playlists(locate(config.playlist_file, config)) if config.playlist_file else None
    if config.playlist_ids:
        # imported here so runs without --playlist-id never touch the network client
        from fetch.spotify_playlists import fetch_playlists
        fetched = fetch_playlists(config.playlist_ids)
        playlists = fetched if playlists is None else pd.concat([playlists, fetched], ignore_index=True)

    library = load_library(locate(config.library_file, config)) if config.library_file else None
    aliases = load_user_aliases(locate(config.alias_file, config)) if config.alias_file else None
    history = load_event_csv(locate(config.events_csv, config)) if config.events_csv else None
    return Inputs(events=events, playlists=playlists, library=library, aliases=aliases, history=history)


def run(config):
    """Load, normalize, aggregate and render. Returns (events, views, report)."""
    inputs = load_inputs(config)

    events = normalize_events(inputs.events, config.timezone, config.week_start)
    history = None
    if inputs.history is not None:
        history = normalize_events(inputs.history, config.timezone, config.week_start)

    views = build_views(events, config, playlists=inputs.playlists, library=inputs.library,
                        aliases=inputs.aliases, history=history)
    report = publish(views, config)
    if config.save_tables:
        try_write(report, save_table, events, "events", config)
    return events, views, report
