from __future__ import annotations

import logging
from typing import Optional

import requests

from mprispresence.cache import ArtworkCache
from mprispresence.lastfm_client import fetch_album_cover
from mprispresence.types import MISSING_COVER, UNKNOWN_ALBUM

logger = logging.getLogger(__name__)

_MIN_CACHED_LENGTH = 5


class ArtworkResolver:
    """Cache-first cover lookup with a single last.fm request as fallback."""

    def __init__(
        self,
        session: requests.Session,
        api_key: Optional[str],
        cache: Optional[ArtworkCache] = None,
        timeout: float = 10.0,
    ):
        self.session = session
        self.api_key = api_key
        self.cache = cache
        self.timeout = timeout

    def resolve(
        self,
        current: str,
        previous: str,
        album: str,
        artist: str,
        cache_enabled: bool,
        previous_url: str,
    ) -> str:
        if current == previous:
            return previous_url

        if album == UNKNOWN_ALBUM:
            logger.info("Missing album name or Unknown Album.")
            return MISSING_COVER

        use_cache = cache_enabled and self.cache is not None

        if use_cache:
            cached = self.cache.get(current)
            # single characters have been seen in old cache files
            if cached and len(cached) > _MIN_CACHED_LENGTH:
                logger.debug("[cache] hit for %s", current)
                return cached

        if not self.api_key:
            logger.debug("No last.fm API key configured, skipping lookup for %s", current)
            return MISSING_COVER

        url = fetch_album_cover(self.session, self.api_key, artist, album, timeout=self.timeout)
        if url is None:
            return MISSING_COVER

        logger.info("[last.fm] fetched image link: %s", url)
        if use_cache:
            self.cache.set(current, url)
        return url
