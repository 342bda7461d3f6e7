# /// script
# requires-python = ">=3.11"
# dependencies = [
#     "requests",
#     "python-dotenv",
# ]
# ///

"""
WakaTime -> GitHub Gist sync script.
Fetches the weekly language breakdown from WakaTime and writes it into a gist
as a small text bar chart, one line per language.

Supports:
- Folding the "Other" bucket into your main language (MERGE_TARGET env var)
- Top 5 languages, fixed 53-column lines
- CLI flags: --dry-run to print the chart without touching the gist,
  --env-file, --range, --merge-source, --merge-target
"""

from __future__ import annotations

import argparse
import math
import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path

import requests
from dotenv import load_dotenv

WAKATIME_API = "https://wakatime.com/api/v1"
GITHUB_API = "https://api.github.com"
REQUEST_TIMEOUT = 30

DEFAULT_RANGE = "last_7_days"
DEFAULT_MERGE_SOURCE = "Other"
DEFAULT_MERGE_TARGET = "TypeScript"
DEFAULT_TITLE = "📊 Weekly development breakdown"

# Chart layout
TOP_N = 5
NAME_WIDTH = 10
TIME_WIDTH = 14
BAR_WIDTH = 20

# Eighths of a cell, empty -> full
BAR_SYMBOLS = "░▏▎▍▌▋▊▉█"

ELLIPSIS = "..."


class SyncError(Exception):
    """Base class for failures that abort a sync run."""


class SourceUnavailable(SyncError):
    """WakaTime stats could not be fetched."""


class StoreUnavailable(SyncError):
    """The gist could not be read or updated."""


class ConfigError(Exception):
    pass


@dataclass
class Config:
    wakatime_api_key: str
    gist_id: str | None = None
    github_token: str | None = None
    stats_range: str = DEFAULT_RANGE
    merge_source: str = DEFAULT_MERGE_SOURCE
    merge_target: str = DEFAULT_MERGE_TARGET
    title: str = DEFAULT_TITLE


@dataclass
class LanguageStat:
    """One language entry of a WakaTime stats report."""

    name: str
    hours: int = 0
    minutes: int = 0
    total_seconds: float = 0.0
    percent: float = 0.0
    digital: str = ""
    text: str = ""

    def __post_init__(self):
        if not self.digital:
            self.digital = f"{self.hours}:{self.minutes}"
        if not self.text:
            self.text = f"{self.hours} hrs {self.minutes} mins"

    def refresh_display(self) -> None:
        self.digital = f"{self.hours}:{self.minutes}"
        self.text = f"{self.hours} hrs {self.minutes} mins"

    @classmethod
    def from_api(cls, entry: dict) -> "LanguageStat":
        return cls(
            name=entry["name"],
            hours=int(entry.get("hours") or 0),
            minutes=int(entry.get("minutes") or 0),
            total_seconds=float(entry.get("total_seconds") or 0),
            percent=float(entry.get("percent") or 0),
            digital=entry.get("digital") or "",
            text=entry.get("text") or "",
        )


@dataclass
class Gist:
    filename: str
    content: str


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

def load_env_files(env_file: str | None) -> str | None:
    """
    Load a .env file into the process environment.
    An explicit path must exist; otherwise the first existing candidate wins.
    Returns the loaded path, or None when nothing was found.
    """
    if env_file:
        env_path = Path(env_file).expanduser()
        if not env_path.exists():
            raise FileNotFoundError(f"env file not found: {env_path}")
        load_dotenv(env_path)
        return str(env_path)

    candidates = [
        os.environ.get("WAKA_GIST_ENV_FILE"),
        os.path.join(os.path.dirname(os.path.abspath(__file__)), ".env"),
    ]

    for candidate in candidates:
        if not candidate:
            continue
        path = Path(candidate).expanduser()
        if path.exists():
            load_dotenv(path)
            return str(path)

    return None


def load_config(environ: Mapping[str, str] | None = None, require_gist: bool = True) -> Config:
    env = os.environ if environ is None else environ

    required = ["WAKATIME_API_KEY"]
    if require_gist:
        required += ["GIST_ID", "GH_TOKEN"]
    missing = [name for name in required if not env.get(name)]
    if missing:
        raise ConfigError(f"missing {', '.join(missing)}")

    return Config(
        wakatime_api_key=env["WAKATIME_API_KEY"].strip(),
        gist_id=env.get("GIST_ID") or None,
        github_token=env.get("GH_TOKEN") or None,
        stats_range=env.get("WAKATIME_RANGE") or DEFAULT_RANGE,
        merge_source=env.get("MERGE_SOURCE") or DEFAULT_MERGE_SOURCE,
        merge_target=env.get("MERGE_TARGET") or DEFAULT_MERGE_TARGET,
        title=env.get("GIST_TITLE") or DEFAULT_TITLE,
    )


# ---------------------------------------------------------------------------
# External services
# ---------------------------------------------------------------------------

def fetch_weekly_stats(config: Config) -> list[LanguageStat]:
    url = f"{WAKATIME_API}/users/current/stats/{config.stats_range}"
    try:
        resp = requests.get(
            url, params={"api_key": config.wakatime_api_key}, timeout=REQUEST_TIMEOUT
        )
        resp.raise_for_status()
        payload = resp.json()
    except (requests.RequestException, ValueError) as e:
        raise SourceUnavailable(f"Unable to get WakaTime stats\n{e}") from e

    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, dict):
        raise SourceUnavailable("Unable to get WakaTime stats\nresponse has no data object")

    languages = data.get("languages") or []
    if not isinstance(languages, list) or not all(
        isinstance(entry, dict) and "name" in entry for entry in languages
    ):
        raise SourceUnavailable("Unable to get WakaTime stats\nmalformed languages list")

    return [LanguageStat.from_api(entry) for entry in languages]


def _github_headers(config: Config) -> dict:
    return {
        "Authorization": f"token {config.github_token}",
        "Accept": "application/vnd.github+json",
    }


def get_gist(config: Config) -> Gist:
    """Fetch the gist and return its first file, the one that gets overwritten."""
    url = f"{GITHUB_API}/gists/{config.gist_id}"
    try:
        resp = requests.get(url, headers=_github_headers(config), timeout=REQUEST_TIMEOUT)
        resp.raise_for_status()
        files = resp.json().get("files") or {}
    except (requests.RequestException, ValueError, AttributeError) as e:
        raise StoreUnavailable(f"Unable to get gist\n{e}") from e

    if not files:
        raise StoreUnavailable(f"Gist {config.gist_id} has no files")

    filename = next(iter(files))
    return Gist(filename=filename, content=(files[filename] or {}).get("content") or "")


def update_gist(config: Config, filename: str, title: str, content: str) -> None:
    url = f"{GITHUB_API}/gists/{config.gist_id}"
    payload = {"files": {filename: {"filename": title, "content": content}}}
    try:
        resp = requests.patch(
            url, json=payload, headers=_github_headers(config), timeout=REQUEST_TIMEOUT
        )
        resp.raise_for_status()
    except requests.RequestException as e:
        raise StoreUnavailable(f"Unable to update gist\n{e}") from e


# ---------------------------------------------------------------------------
# Report shaping
# ---------------------------------------------------------------------------

def merge_language(report: list[LanguageStat], source: str, target: str) -> list[LanguageStat]:
    """
    Fold the `source` language into `target` and re-sort by time spent.
    No-op when either language is missing from the report.

    Minutes carry into hours at most once, so a combined value of 120 or more
    minutes stays partially un-normalized.
    """
    src = next((s for s in report if s.name == source), None)
    dst = next((s for s in report if s.name == target), None)
    if src is None or dst is None or src is dst:
        return report

    dst.hours += src.hours
    dst.minutes += src.minutes
    if dst.minutes >= 60:
        dst.minutes -= 60
        dst.hours += 1

    dst.refresh_display()
    dst.total_seconds += src.total_seconds
    dst.percent += src.percent

    report.remove(src)
    report.sort(key=lambda s: s.total_seconds, reverse=True)
    return report


def select_top(report: list[LanguageStat], n: int = TOP_N) -> list[LanguageStat]:
    return report[:n]


def generate_bar_chart(percent: float, width: int) -> str:
    if width <= 0:
        raise ValueError(f"bar width must be positive, got {width}")

    eighths = math.floor(width * 8 * max(percent, 0) / 100)
    full = eighths // 8
    if full >= width:
        return BAR_SYMBOLS[8] * width

    bar = BAR_SYMBOLS[8] * full + BAR_SYMBOLS[eighths % 8]
    return bar.ljust(width, BAR_SYMBOLS[0])


def trim_right(text: str, length: int) -> str:
    if len(text) <= length:
        return text
    return text[: length - len(ELLIPSIS)] + ELLIPSIS


def format_percent(percent: float) -> str:
    # Ties round up, so 12.25 -> "12.3"; Decimal(float) keeps the exact binary value
    return str(Decimal(percent).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def format_line(stat: LanguageStat) -> str:
    return " ".join([
        trim_right(stat.name, NAME_WIDTH).ljust(NAME_WIDTH),
        stat.text.ljust(TIME_WIDTH),
        generate_bar_chart(stat.percent, BAR_WIDTH),
        format_percent(stat.percent).rjust(5) + "%",
    ])


def render_report(
    report: list[LanguageStat],
    merge_source: str = DEFAULT_MERGE_SOURCE,
    merge_target: str = DEFAULT_MERGE_TARGET,
) -> str:
    """Render the chart text. An empty string means there is nothing to write."""
    merge_language(report, merge_source, merge_target)
    return "\n".join(format_line(stat) for stat in select_top(report))


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------

def sync(config: Config, dry_run: bool = False) -> bool:
    """
    Run one WakaTime -> gist sync.
    Returns True on success (including "nothing to write"), False on failure.
    """
    print(f"Fetching WakaTime stats ({config.stats_range})")
    try:
        report = fetch_weekly_stats(config)
        gist = None if dry_run else get_gist(config)
    except SyncError as e:
        eprint(str(e))
        return False

    print(f"Got {len(report)} languages, merging {config.merge_source} into {config.merge_target}")
    content = render_report(report, config.merge_source, config.merge_target)
    if not content:
        print("No language stats to write, skipping gist update")
        return True

    if dry_run:
        print("dry-run: not updating gist")
        print(content)
        return True

    try:
        update_gist(config, gist.filename, config.title, content)
    except SyncError as e:
        eprint(str(e))
        return False

    print(f"Success: updated gist {config.gist_id} ({len(content.splitlines())} lines)")
    return True


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Write a weekly WakaTime language chart into a GitHub gist",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  uv run waka_gist_sync.py                        # Update the gist
  uv run waka_gist_sync.py --dry-run              # Print the chart only
  uv run waka_gist_sync.py --merge-target Python  # Fold "Other" into Python
        """
    )
    parser.add_argument("--env-file", help="Path to .env file")
    parser.add_argument("--dry-run", action="store_true", help="Do not update the gist")
    parser.add_argument("--range", dest="stats_range", help="WakaTime stats range (default: last_7_days)")
    parser.add_argument("--merge-source", help="Language to fold away (default: Other)")
    parser.add_argument("--merge-target", help="Language that absorbs it (default: TypeScript)")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        env_loaded = load_env_files(args.env_file)
    except FileNotFoundError as exc:
        eprint(str(exc))
        return 2

    try:
        config = load_config(require_gist=not args.dry_run)
    except ConfigError as exc:
        eprint(str(exc))
        return 2

    if args.stats_range:
        config.stats_range = args.stats_range
    if args.merge_source:
        config.merge_source = args.merge_source
    if args.merge_target:
        config.merge_target = args.merge_target

    print("WakaTime -> Gist Sync")
    if env_loaded:
        print(f"env={env_loaded}")

    return 0 if sync(config, dry_run=args.dry_run) else 1


if __name__ == "__main__":
    raise SystemExit(main())
