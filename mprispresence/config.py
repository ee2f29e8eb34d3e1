from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Tuple
import tomllib

from mprispresence.cache import CACHE_FILENAME
from mprispresence.presence import DEFAULT_CLIENT_ID

PROG = "mpris-presence"

DEFAULT_CONFIG_PATH = Path("~/.config/mpris-presence/config.toml").expanduser()

DEFAULT_INTERVAL = 10
MIN_INTERVAL = 5


def load_config(path: Path | None = None) -> dict:
    cfg_path = path or DEFAULT_CONFIG_PATH
    if not cfg_path.exists():
        # Allow running without config (still possible via CLI args)
        return {}

    with cfg_path.open("rb") as f:
        cfg = tomllib.load(f)

    # Expand ~ in any string paths under [paths]
    paths = cfg.get("paths", {})
    for k, v in list(paths.items()):
        if isinstance(v, str):
            paths[k] = os.path.expanduser(v)

    return cfg


def clamp_interval(value: Optional[int]) -> int:
    if value is None:
        return DEFAULT_INTERVAL
    return max(MIN_INTERVAL, int(value))


def default_cache_dir(environ: Mapping[str, str]) -> Optional[Path]:
    """
    $XDG_CACHE_HOME/mpris-presence, else ~/.cache/mpris-presence.
    None when there is no $HOME to write under.
    """
    home = environ.get("HOME")
    if not home:
        return None
    xdg = environ.get("XDG_CACHE_HOME")
    if xdg:
        return Path(xdg) / "mpris-presence"
    return Path(home) / ".cache" / "mpris-presence"


@dataclass(frozen=True)
class Settings:
    interval: int = DEFAULT_INTERVAL
    allowlist: Tuple[str, ...] = ()
    cache_enabled: bool = True
    cache_dir: Optional[Path] = None
    yt_button: bool = False
    profile_button: Optional[str] = None
    lastfm_api_key: Optional[str] = None
    client_id: str = DEFAULT_CLIENT_ID
    debug_log: bool = False
    list_players: bool = False

    @property
    def cache_path(self) -> Optional[Path]:
        if not self.cache_enabled or self.cache_dir is None:
            return None
        return self.cache_dir / CACHE_FILENAME


def build_settings(cfg: dict, args=None, environ: Mapping[str, str] | None = None) -> Settings:
    """
    Merge the TOML config with CLI arguments; CLI wins where it was given.
    """
    environ = os.environ if environ is None else environ

    presence_cfg = cfg.get("presence", {})
    lastfm_cfg = cfg.get("lastfm", {})
    paths_cfg = cfg.get("paths", {})

    def arg(name):
        return getattr(args, name, None) if args is not None else None

    interval = arg("interval")
    if interval is None:
        interval = presence_cfg.get("interval")

    allowlist = arg("allowlist") or presence_cfg.get("allowlist") or []
    if isinstance(allowlist, str):
        allowlist = [allowlist]

    disable_cache = bool(arg("disable_cache") or presence_cfg.get("disable_cache", False))

    cache_dir: Optional[Path]
    if paths_cfg.get("cache"):
        cache_dir = Path(paths_cfg["cache"]).expanduser()
    else:
        cache_dir = default_cache_dir(environ)

    api_key = arg("lastfm_api_key") or environ.get("LASTFM_API_KEY") or lastfm_cfg.get("api_key")

    return Settings(
        interval=clamp_interval(interval),
        allowlist=tuple(str(a) for a in allowlist),
        cache_enabled=not disable_cache and cache_dir is not None,
        cache_dir=cache_dir,
        yt_button=bool(arg("yt_button") or presence_cfg.get("yt_button", False)),
        profile_button=arg("profile_button") or presence_cfg.get("profile_button") or None,
        lastfm_api_key=api_key or None,
        client_id=str(presence_cfg.get("client_id") or DEFAULT_CLIENT_ID),
        debug_log=bool(arg("debug_log") or presence_cfg.get("debug_log", False)),
        list_players=bool(arg("list_players")),
    )
