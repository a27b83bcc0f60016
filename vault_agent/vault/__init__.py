"""
Vault path normalization and resolution.
"""

from .normalizer import match_key, normalize, remove_emojis, to_vault_path
from .resolver import VaultListing, VaultPathResolver, find_best_match, parse_listing

__all__ = [
    "match_key",
    "normalize",
    "remove_emojis",
    "to_vault_path",
    "VaultListing",
    "VaultPathResolver",
    "find_best_match",
    "parse_listing",
]
