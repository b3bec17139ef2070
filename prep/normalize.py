# prep/normalize.py
import pandas as pd

# ---- Device classification ----
# Case-sensitive substrings, checked in order; the first hit wins.
DEVICE_RULES = [
    ("Phone", "Android"),
    ("Phone", "android"),
    ("Phone", "ANDROID"),
    ("Phone", "iOS"),
    ("Phone", "ios"),
    ("Phone", "iPhone"),
    ("Phone", "iPad"),
    ("Computer", "Windows"),
    ("Computer", "windows"),
    ("Computer", "WINDOWS"),
    ("Computer", "OS X"),
    ("Computer", "osx"),
    ("Computer", "Mac"),
    ("Computer", "macOS"),
    ("Computer", "Linux"),
    ("Computer", "linux"),
    ("Computer", "LINUX"),
    ("Computer", "web_player"),
    ("Computer", "WebPlayer"),
]
DEVICE_CATEGORIES = ["Phone", "Computer", "Unknown"]

# ---- Start / end reasons ----
START_REASONS = {
    "trackdone": "Autoplay",
    "clickrow": "Selected",
    "playbtn": "Play button",
    "fwdbtn": "Skipped to",
    "backbtn": "Went back to",
    "appload": "App opened",
    "remote": "Remote",
    "trackerror": "Error",
}
END_REASONS = {
    "trackdone": "Finished",
    "fwdbtn": "Skipped",
    "backbtn": "Went back",
    "endplay": "Stopped",
    "logout": "Logged out",
    "remote": "Remote",
    "trackerror": "Error",
    "unexpected-exit": "Crashed",
    "unexpected-exit-while-paused": "Crashed",
}
OTHER_REASON = "Other"

WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
FLAG_COLUMNS = ["shuffle", "incognito_mode", "offline", "skipped"]
MS_PER_HOUR = 3_600_000


def classify_device(platform) -> str:
    if platform is None or platform is pd.NA or not isinstance(platform, str):
        return "Unknown"
    for label, needle in DEVICE_RULES:
        if needle in platform:
            return label
    return "Unknown"

def classify_reason(code, table) -> str:
    if not isinstance(code, str):
        return OTHER_REASON
    return table.get(code, OTHER_REASON)


def weekday_number(dayofweek: pd.Series, week_start: int = 0) -> pd.Series:
    """pandas dayofweek (0=Mon) -> 1..7 where 1 is `week_start`."""
    return (dayofweek - week_start) % 7 + 1


def normalize_events(events: pd.DataFrame, timezone: str = "UTC", week_start: int = 0) -> pd.DataFrame:
    """Derive calendar, device, reason and release-year columns from the raw event fields.

    Derived columns depend only on raw columns, so running this on its own
    output gives the same table back.
    """
    df = events.copy()

    local = pd.to_datetime(df["ts"], utc=True).dt.tz_convert(timezone)
    df["date"] = local.dt.normalize().dt.tz_localize(None)
    df["year"] = local.dt.year.astype("int64")
    df["month"] = local.dt.month.astype("int64")
    df["day"] = local.dt.day.astype("int64")
    df["hour"] = local.dt.hour.astype("int64")
    df["day_of_year"] = local.dt.dayofyear.astype("int64")
    df["weekday"] = weekday_number(local.dt.dayofweek, week_start).astype("int64")
    df["weekday_name"] = pd.Categorical(local.dt.dayofweek.map(lambda i: WEEKDAY_NAMES[i]),
                                        categories=rotate(WEEKDAY_NAMES, week_start))

    platform = df["platform"] if "platform" in df.columns else pd.Series(pd.NA, index=df.index)
    df["device"] = pd.Categorical(platform.astype(object).map(classify_device), categories=DEVICE_CATEGORIES)

    reason_start = df["reason_start"] if "reason_start" in df.columns else pd.Series(pd.NA, index=df.index)
    reason_end = df["reason_end"] if "reason_end" in df.columns else pd.Series(pd.NA, index=df.index)
    df["start_category"] = reason_start.astype(object).map(lambda c: classify_reason(c, START_REASONS)).astype("string")
    df["end_category"] = reason_end.astype(object).map(lambda c: classify_reason(c, END_REASONS)).astype("string")

    if "release_date" in df.columns:
        year_text = df["release_date"].astype("string").str.extract(r"^(\d{4})", expand=False)
        df["release_year"] = pd.to_numeric(year_text, errors="coerce").astype("Int64")
    else:
        df["release_year"] = pd.Series(pd.NA, index=df.index, dtype="Int64")

    df["hours"] = df["ms_played"].astype("float64") / MS_PER_HOUR

    for c in FLAG_COLUMNS:
        if c in df.columns:
            df[c] = df[c].astype("boolean")
        else:
            df[c] = pd.Series(pd.NA, index=df.index, dtype="boolean")

    return df


def rotate(seq, start: int):
    return list(seq[start:]) + list(seq[:start])
