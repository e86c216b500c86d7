"""Rarity multiplier lookup used by the market-value estimate.

The default lookup matches keywords in the extracted card text. A JSON object
of ``{"keyword": multiplier}`` pairs can be supplied through
PREGRADER_RARITY_TABLE to extend the built-in table.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Mapping, Optional, Protocol


logger = logging.getLogger(__name__)

DEFAULT_MULTIPLIERS: dict[str, float] = {"charizard": 5.0}
NO_PREMIUM = 1.0


class RarityLookup(Protocol):
    def multiplier(self, text: str) -> float:
        ...


class KeywordRarityLookup:
    """Highest multiplier among keywords found (case-insensitive) in the text."""

    def __init__(self, table: Optional[Mapping[str, float]] = None):
        source = DEFAULT_MULTIPLIERS if table is None else table
        self._table = {k.strip().lower(): float(v) for k, v in source.items() if k.strip()}

    def multiplier(self, text: str) -> float:
        lowered = (text or "").lower()
        hits = [m for keyword, m in self._table.items() if keyword in lowered]
        return max(hits) if hits else NO_PREMIUM


def _load_table(path: str) -> dict[str, float]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"rarity table {path} must be a JSON object")
    return {str(k): float(v) for k, v in data.items()}


def default_rarity_lookup() -> KeywordRarityLookup:
    path = os.environ.get("PREGRADER_RARITY_TABLE", "").strip()
    if not path:
        return KeywordRarityLookup()
    table = dict(DEFAULT_MULTIPLIERS)
    table.update(_load_table(path))
    logger.info("loaded %d rarity keywords from %s", len(table), path)
    return KeywordRarityLookup(table)
