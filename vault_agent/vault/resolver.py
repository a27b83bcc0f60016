"""
Resolves loosely specified note names against the live vault listing.
"""

import asyncio
import json
import logging
import time
from typing import TYPE_CHECKING, Callable, Optional

from ..errors import ProviderUnavailableError
from .normalizer import DEFAULT_EXTENSION, match_key, normalize, to_vault_path

if TYPE_CHECKING:
    from ..tools.provider import ToolProvider

logger = logging.getLogger(__name__)

DEFAULT_INDEX_TTL_SECONDS = 15.0


def parse_listing(text: str) -> list[str]:
    """
    Parse a vault listing tool response.

    Accepts a JSON array, a JSON object with a ``files`` array, or plain
    newline-separated paths. Duplicates are dropped, order is kept.
    """
    text = (text or "").strip()
    if not text:
        return []

    entries: list = []
    try:
        parsed = json.loads(text)
    except ValueError:
        parsed = None

    if isinstance(parsed, list):
        entries = parsed
    elif isinstance(parsed, dict) and isinstance(parsed.get("files"), list):
        entries = parsed["files"]
    else:
        entries = text.splitlines()

    paths = []
    seen = set()
    for entry in entries:
        path = str(entry).strip()
        if path and path not in seen:
            seen.add(path)
            paths.append(path)
    return paths


class VaultListing:
    """
    Authoritative list of vault paths, cached briefly.

    Args:
        provider: Tool provider hosting the listing tool
        server: Server name that owns the vault
        tool_name: Listing tool to call with empty arguments
        ttl_seconds: How long a listing is reused
        clock: Monotonic time source
    """

    def __init__(
        self,
        provider: "ToolProvider",
        server: str = "obsidian",
        tool_name: str = "obsidian_list_files_in_vault",
        ttl_seconds: float = DEFAULT_INDEX_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.provider = provider
        self.server = server
        self.tool_name = tool_name
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cached: Optional[tuple[float, list[str]]] = None

    async def list_all_paths(self) -> list[str]:
        """
        Return every path in the vault.

        Raises:
            ProviderUnavailableError: If the listing tool fails
        """
        cached = self._cached
        if cached is not None and self._clock() < cached[0]:
            return cached[1]

        result = await self.provider.call_tool(self.server, self.tool_name, {})
        if result.is_error:
            raise ProviderUnavailableError(self.server, result.content[:500])

        paths = parse_listing(result.content)
        self._cached = (self._clock() + self.ttl_seconds, paths)
        logger.debug(f"Vault listing refreshed: {len(paths)} paths")
        return paths

    def invalidate(self) -> None:
        self._cached = None


def find_best_match(
    candidate: str, paths: list[str], extension: str = DEFAULT_EXTENSION
) -> Optional[str]:
    """
    Pick the listed path that best matches a candidate.

    Order of precedence: exact key match (bare key, then with the
    extension enforced); listed keys containing the candidate key; the
    candidate key containing a listed key. Forward matches prefer the
    shortest key; reverse matches prefer the longest key, the most specific
    listed name. Remaining ties go to the shorter path.
    """
    bare = match_key(candidate)
    if not bare:
        return None
    full = normalize(candidate, extension)

    keyed = [(match_key(path), path) for path in paths]
    keyed = [(key, path) for key, path in keyed if key]

    for key, path in keyed:
        if key == bare:
            return path
    for key, path in keyed:
        if normalize(path, extension) == full:
            return path

    forward = [(key, path) for key, path in keyed if bare in key]
    if forward:
        return min(forward, key=lambda kp: (len(kp[0]), len(kp[1])))[1]

    reverse = [(key, path) for key, path in keyed if key in bare]
    if reverse:
        return min(reverse, key=lambda kp: (-len(kp[0]), len(kp[1])))[1]
    return None


class VaultPathResolver:
    """
    Maps user-supplied note references to real vault paths.

    Falls back to the candidate in vault-path form when the listing is
    unavailable or nothing matches.
    """

    def __init__(self, listing: VaultListing, extension: str = DEFAULT_EXTENSION):
        self.listing = listing
        self.extension = extension

    def normalize(self, candidate: str) -> str:
        return normalize(candidate, self.extension)

    async def find(self, candidate: str) -> Optional[str]:
        """
        Look up a candidate in the vault listing.

        Returns:
            The listed path without a trailing slash, or None when the
            listing is unavailable or nothing matches
        """
        if not candidate or not candidate.strip():
            return None

        try:
            paths = await self.listing.list_all_paths()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Vault listing unavailable for '{candidate}': {e}")
            return None

        match = find_best_match(candidate, paths, self.extension)
        if match is None:
            logger.debug(f"No vault match for '{candidate}'")
            return None
        return match.rstrip("/")

    async def resolve(self, candidate: str) -> str:
        """
        Resolve a candidate to a canonical vault path.

        Args:
            candidate: Loose reference such as "daily note"

        Returns:
            The listed path (original casing and emojis, no trailing
            slash), or the candidate in vault-path form
        """
        match = await self.find(candidate)
        if match is None:
            return to_vault_path(candidate, self.extension)
        logger.debug(f"Resolved '{candidate}' -> '{match}'")
        return match
