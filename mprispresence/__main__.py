from __future__ import annotations

import argparse
import logging
import sqlite3
from pathlib import Path

from mprispresence.artwork import ArtworkResolver
from mprispresence.cache import ArtworkCache
from mprispresence.config import DEFAULT_INTERVAL, MIN_INTERVAL, PROG, build_settings, load_config
from mprispresence.lastfm_client import create_session
from mprispresence.presence import DiscordTransport, PresenceManager
from mprispresence.reconciler import Reconciler

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog=PROG,
        description="Show what your MPRIS music player is playing as a Discord status, with album covers and a progress bar.",
    )
    ap.add_argument("--config", default=None, help="Path to config file (default: ~/.config/mpris-presence/config.toml)")

    # Loop
    ap.add_argument(
        "-i", "--interval",
        type=int,
        default=None,
        help=f"Seconds between player polls (default: {DEFAULT_INTERVAL}, minimum: {MIN_INTERVAL})",
    )
    ap.add_argument(
        "-a", "--allowlist-add",
        dest="allowlist",
        action="append",
        default=None,
        metavar="PLAYER",
        help="Only use this player; repeat to add more, earlier entries win",
    )
    ap.add_argument("-l", "--list-players", action="store_true", help="List players with MPRIS support and exit")

    # Artwork
    ap.add_argument("--disable-cache", action="store_true", help="Do not read or write the album cover cache")
    ap.add_argument("--lastfm-api-key", default=None, help="last.fm API key (overrides config and LASTFM_API_KEY)")

    # Activity
    ap.add_argument("--yt-button", action="store_true", help='Show a "Search this song on YouTube" button')
    ap.add_argument("--profile-button", default=None, metavar="NICKNAME", help="Show a button linking to this last.fm profile")

    ap.add_argument("--debug-log", action="store_true", help="Print debug output")
    return ap


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    cfg = load_config(Path(args.config) if args.config else None)
    settings = build_settings(cfg, args)

    logging.basicConfig(
        level=logging.DEBUG if settings.debug_log else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.debug("Settings: %s", settings)

    if not settings.lastfm_api_key:
        logger.warning("No last.fm API key configured; album covers are disabled")

    cache = None
    if settings.cache_path is not None:
        logger.debug("Cache location: %s", settings.cache_dir)
        try:
            cache = ArtworkCache(settings.cache_path)
        except (OSError, sqlite3.Error) as e:
            logger.warning("Could not open cache %s, running without it: %s", settings.cache_path, e)

    resolver = ArtworkResolver(
        session=create_session(),
        api_key=settings.lastfm_api_key,
        cache=cache,
        timeout=float(settings.interval),
    )
    presence = PresenceManager(DiscordTransport(settings.client_id))
    reconciler = Reconciler(settings, presence, resolver)

    try:
        return reconciler.run_forever()
    except KeyboardInterrupt:
        return 0
    finally:
        presence.close()
        if cache is not None:
            cache.close()


if __name__ == "__main__":
    raise SystemExit(main())
