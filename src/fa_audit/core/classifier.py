"""Keyword classification of function names into capability categories."""

from __future__ import annotations

import re
from typing import Iterable

from fa_audit.models.findings import ClassifiedFunctions

# Each category is tested independently; a name may land in several.
CATEGORY_PATTERNS: dict[str, re.Pattern[str]] = {
    "mint": re.compile(r"\b(mint|issue|create|increase_supply|emit|mint_to|faucet)\b", re.IGNORECASE),
    "burn": re.compile(r"\b(burn|destroy|burn_from|decrease_supply)\b", re.IGNORECASE),
    "admin": re.compile(
        r"\b(set_admin|set_owner|transfer_ownership|rotate|set_operator|set_authority)\b",
        re.IGNORECASE,
    ),
    "freeze": re.compile(
        r"\b(freeze|pause|blacklist|deny|restrict|whitelist|lock|unfreeze|disable|enable)\b",
        re.IGNORECASE,
    ),
    "hook_config": re.compile(
        r"\b(set_hook|set_dispatch|dispatch|route|configure|update|set_config|set_router"
        r"|register_hook|unregister_hook)\b",
        re.IGNORECASE,
    ),
    "upgrade": re.compile(
        r"\b(upgrade|migrate|publish|deploy|update_module|set_code)\b",
        re.IGNORECASE,
    ),
    "metadata": re.compile(
        r"\b(set_name|set_symbol|set_decimals|set_uri|set_icon|set_metadata"
        r"|update_metadata|change_metadata)\b",
        re.IGNORECASE,
    ),
}


def categories_for(name: str) -> list[str]:
    """All categories a single function name falls into."""
    return [category for category, pattern in CATEGORY_PATTERNS.items() if pattern.search(name)]


def classify_functions(names: Iterable[str]) -> ClassifiedFunctions:
    """Partition function names into capability categories.

    Args:
        names: Function names (order preserved within each category)

    Returns:
        ClassifiedFunctions with one list per category
    """
    buckets: dict[str, list[str]] = {category: [] for category in CATEGORY_PATTERNS}
    for name in names:
        for category in categories_for(name):
            buckets[category].append(name)
    return ClassifiedFunctions(**buckets)
