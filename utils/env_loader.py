from dotenv import load_dotenv
import os

REPORT_KEYS = [
    "REPORT_INPUT_DIR",
    "REPORT_HISTORY_PATTERNS",
    "REPORT_PLAYLIST_FILE",
    "REPORT_LIBRARY_FILE",
    "REPORT_ALIAS_FILE",
    "REPORT_EVENTS_CSV",
    "REPORT_OUTPUT_DIR",
    "REPORT_SAVE_TABLES",
    "REPORT_SAVE_CHARTS",
    "REPORT_MIN_YEAR",
    "REPORT_PRIMARY_ARTIST",
    "REPORT_TOP_N",
    "REPORT_WEEK_START",
    "REPORT_TIMEZONE",
    "REPORT_ARTIST_DELIMITER",
    "REPORT_MAX_ARTISTS",
    "REPORT_CHART_FORMAT",
]

def load_env(dotenv_path=None):
    load_dotenv(dotenv_path)

    env = {key: os.getenv(key) for key in REPORT_KEYS}
    env["SPOTIFY_CLIENT_ID"] = os.getenv("SPOTIFY_CLIENT_ID")
    env["SPOTIFY_CLIENT_SECRET"] = os.getenv("SPOTIFY_CLIENT_SECRET")
    return env
