"""
Vault path normalization.

Users refer to notes loosely ("project ideas", "PROJECT IDEAS.MD") while
the vault stores decorated names ("💡 Project Ideas.md"). These helpers
reduce both sides to a comparable key.
"""

import re

DEFAULT_EXTENSION = ".md"

EMOJI_PATTERN = re.compile(
    "["
    "\U0001F000-\U0001FAFF"  # pictographs, emoticons, transport, symbols
    "\U00002600-\U000027BF"  # misc symbols and dingbats
    "\U00002B00-\U00002BFF"  # arrows, stars
    "\U00002190-\U000021FF"  # arrows
    "\U00002300-\U000023FF"  # misc technical (hourglass, keyboard)
    "\U0000FE00-\U0000FE0F"  # variation selectors
    "\U0000200D"  # zero width joiner
    "\U000020E3"  # combining keycap
    "]+"
)

_WHITESPACE = re.compile(r"\s+")
_EXTENSION = re.compile(r"\.[A-Za-z0-9]{1,8}$")


def remove_emojis(text: str) -> str:
    """Strip emoji and decorative pictographs."""
    return EMOJI_PATTERN.sub("", text)


def has_extension(path: str) -> bool:
    """True if the last path segment carries a file extension."""
    last = path.rstrip("/").rsplit("/", 1)[-1]
    return bool(_EXTENSION.search(last))


def match_key(text: str) -> str:
    """
    Reduce a name to its comparison key without touching the extension.

    Removes emojis, lowercases, converts backslashes, drops all whitespace
    and any trailing slash.
    """
    key = remove_emojis(text).lower().strip().replace("\\", "/")
    key = _WHITESPACE.sub("", key)
    return key.rstrip("/")


def normalize(candidate: str, extension: str = DEFAULT_EXTENSION) -> str:
    """
    Normalize a note reference to its canonical key.

    The key is the match key with the expected extension enforced, so
    "💡 Project Ideas.md", "project ideas" and "PROJECT IDEAS.MD" all
    yield "projectideas.md". Folder references (trailing slash) keep no
    extension.

    Args:
        candidate: User-supplied or listed path
        extension: Extension to enforce on files

    Returns:
        Normalized key
    """
    is_folder = candidate.strip().replace("\\", "/").endswith("/")
    key = match_key(candidate)
    if key and not is_folder and not has_extension(key):
        key += extension.lower()
    return key


def to_vault_path(candidate: str, extension: str = DEFAULT_EXTENSION) -> str:
    """
    Convert a candidate to vault path form, preserving case and emojis.

    Trims, uses forward slashes, drops a trailing slash and appends the
    extension when the last segment has none (unless the candidate named
    a folder).
    """
    path = candidate.strip().replace("\\", "/")
    is_folder = path.endswith("/")
    path = path.rstrip("/")
    if path and not is_folder and not has_extension(path):
        path += extension
    return path
