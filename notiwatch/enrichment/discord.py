"""Avatar and guild icon lookups for the Discord gamer chat client."""

import io
import logging
import os
from typing import List, Optional

import requests
from dotenv import load_dotenv
from PIL import Image, UnidentifiedImageError

from .base import EnrichmentBridge, ImageCallback

logger = logging.getLogger(__name__)

# Load environment variables from .env file
load_dotenv()

API_BASE = "https://discord.com/api/v9"
CDN_BASE = "https://cdn.discordapp.com"
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Safari/605.1.15"
)


class DiscordBridge(EnrichmentBridge):
    """
    Discord REST lookups.

    Candidates are tried in order; a 404 moves on to the next one, any
    other failure ends the lookup with no image.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
        token_env: str = "DISCORD_TOKEN",
    ):
        """
        Initialize the bridge.

        Args:
            token: Authorization token; read from token_env when omitted.
            session: HTTP session, mostly for tests.
            timeout: Per-request timeout in seconds.
            token_env: Environment variable holding the token.
        """
        self.token = token or os.getenv(token_env)
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": USER_AGENT})

    @property
    def name(self) -> str:
        return "DiscordBridge"

    def get_profile_picture(self, candidates: List[str], completion: ImageCallback) -> None:
        if not self.token or not candidates:
            completion(None)
            return

        for user_id in candidates:
            logger.debug(f"Fetching profile picture for user {user_id}")
            try:
                data = self._get_json(f"{API_BASE}/users/{user_id}")
            except requests.HTTPError as e:
                if e.response is not None and e.response.status_code == 404:
                    logger.debug(f"User {user_id} not found, trying next candidate")
                    continue
                logger.error(f"User API request failed: {e}")
                break
            except requests.RequestException as e:
                logger.error(f"User API request error: {e}")
                break

            avatar = data.get("avatar") if isinstance(data, dict) else None
            if not avatar:
                logger.debug(f"User {user_id} has no avatar")
                break
            completion(self._download_image(f"{CDN_BASE}/avatars/{user_id}/{avatar}.png?size=128"))
            return

        completion(None)

    def get_guild_icon(self, guild_id: str, completion: ImageCallback) -> None:
        if not self.token:
            completion(None)
            return

        try:
            data = self._get_json(f"{API_BASE}/guilds/{guild_id}")
        except requests.RequestException as e:
            logger.error(f"Guild API request error: {e}")
            completion(None)
            return

        icon = data.get("icon") if isinstance(data, dict) else None
        if not icon:
            logger.debug(f"Guild {guild_id} has no icon")
            completion(None)
            return
        completion(self._download_image(f"{CDN_BASE}/icons/{guild_id}/{icon}.png?size=128"))

    def _get_json(self, url: str):
        response = self._session.get(
            url,
            headers={"Authorization": self.token},
            timeout=self.timeout,
        )
        response.raise_for_status()
        try:
            return response.json()
        except ValueError as e:
            raise requests.RequestException(f"invalid JSON from {url}") from e

    def _download_image(self, url: str) -> Optional[Image.Image]:
        try:
            response = self._session.get(url, timeout=self.timeout)
            response.raise_for_status()
            image = Image.open(io.BytesIO(response.content))
            image.load()
            return image
        except (requests.RequestException, UnidentifiedImageError, OSError) as e:
            logger.error(f"Image download failed for {url}: {e}")
            return None
