import logging

import requests
import pandas as pd

from ingest.schema import PLAYLIST_SCHEMA, validate_frame
from utils.env_loader import load_env
from utils.errors import MissingCredentialsError

logger = logging.getLogger(__name__)

TOKEN_URL = "https://accounts.spotify.com/api/token"
API_URL = "https://api.spotify.com/v1"
PAGE_LIMIT = 100


def get_token(client_id, client_secret):
    response = requests.post(
        TOKEN_URL,
        data={"grant_type": "client_credentials"},
        auth=(client_id, client_secret),
        timeout=10,
    )
    response.raise_for_status()
    return response.json()["access_token"]


def fetch_playlist(playlist_id, token):
    """All track items of one playlist as PlaylistEntry rows."""
    headers = {"Authorization": f"Bearer {token}"}

    meta = requests.get(f"{API_URL}/playlists/{playlist_id}", headers=headers,
                        params={"fields": "name"}, timeout=10)
    meta.raise_for_status()
    name = meta.json()["name"]

    url = f"{API_URL}/playlists/{playlist_id}/tracks"
    params = {"limit": PAGE_LIMIT, "offset": 0}
    rows = []
    while url:
        response = requests.get(url, headers=headers, params=params, timeout=10)
        response.raise_for_status()
        page = response.json()

        for item in page.get("items", []):
            track = item.get("track")
            if not track or track.get("type", "track") != "track":
                continue
            rows.append({
                "playlist": name,
                "track": track.get("name"),
                "artist": ", ".join(a["name"] for a in track.get("artists", [])),
                "album": (track.get("album") or {}).get("name"),
                "added_at": item.get("added_at"),
                "added_by": (item.get("added_by") or {}).get("id"),
            })

        # `next` already carries limit/offset
        url = page.get("next")
        params = None

    logger.info("Fetched %s tracks from playlist '%s'", len(rows), name)
    df = pd.DataFrame(rows, columns=["playlist", "track", "artist", "album", "added_at", "added_by"])
    return validate_frame(df, PLAYLIST_SCHEMA, f"playlist {playlist_id}")


def fetch_playlists(playlist_ids):
    env = load_env()
    if not env["SPOTIFY_CLIENT_ID"] or not env["SPOTIFY_CLIENT_SECRET"]:
        raise MissingCredentialsError(["SPOTIFY_CLIENT_ID", "SPOTIFY_CLIENT_SECRET"])
    token = get_token(env["SPOTIFY_CLIENT_ID"], env["SPOTIFY_CLIENT_SECRET"])
    frames = [fetch_playlist(pid, token) for pid in playlist_ids]
    return pd.concat(frames, ignore_index=True)
