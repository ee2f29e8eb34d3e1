from __future__ import annotations

import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)

LASTFM_BASE = "http://ws.audioscrobbler.com/2.0/"
DEFAULT_USER_AGENT = "mpris-presence/0.1.0"
_MIN_URL_LENGTH = 5


def create_session(user_agent: str = DEFAULT_USER_AGENT) -> requests.Session:
    s = requests.Session()
    s.headers.update({
        "User-Agent": user_agent,
        "Accept": "application/json",
    })
    return s


def _largest_image(data: object) -> Optional[str]:
    """
    album.image[3]["#text"] is the largest size last.fm hands out.
    """
    if not isinstance(data, dict):
        return None
    album = data.get("album")
    if not isinstance(album, dict):
        return None
    images = album.get("image")
    if not isinstance(images, list) or len(images) < 4:
        return None
    image = images[3]
    if not isinstance(image, dict):
        return None
    url = image.get("#text")
    if not isinstance(url, str):
        return None
    return url


def fetch_album_cover(
    session: requests.Session,
    api_key: str,
    artist: str,
    album: str,
    timeout: float = 10.0,
) -> Optional[str]:
    """
    Single album.getinfo request, no retry. Returns the cover url or None.
    """
    params = {
        "method": "album.getinfo",
        "api_key": api_key,
        "artist": artist,
        "album": album,
        "autocorrect": "0",
        "format": "json",
    }
    try:
        r = session.get(LASTFM_BASE, params=params, timeout=timeout)
    except requests.RequestException as e:
        logger.warning("[last.fm] request failed for %s - %s: %s", artist, album, type(e).__name__)
        return None

    if not 200 <= r.status_code < 300:
        logger.debug("[last.fm] HTTP %s for %s - %s", r.status_code, artist, album)
        return None

    try:
        data = r.json()
    except ValueError:
        logger.debug("[last.fm] malformed JSON for %s - %s", artist, album)
        return None

    url = _largest_image(data)
    if not url or len(url) <= _MIN_URL_LENGTH:
        return None
    return url
