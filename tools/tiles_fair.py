"""
AARKTILES — Provably Fair Board Reconstruction

Rebuilds an Aark-tile board from its public seed and row layout, then
re-derives the commitment hash the operator published before play.

Architecture:
    For each row i:
        digest = SHA-256(seed + "-row" + i)
        bomb   = int(digest[:8], 16) % tiles
    Multiplier for row i:
        (1 - house_edge) * prod(1 / (1 - 1/tiles_k) for k <= i)
    Commitment:
        "0x" + SHA-256(JSON.stringify({version, rows, seed}))

The serialization has to match the browser verifier byte for byte, so
numbers are rendered the way JavaScript renders them.

Usage:
    from tools.tiles_fair import build_game_state, generate_game_hash, verify

    state = build_game_state("v1", [3, 3, 4], "abc", [])
    print(generate_game_hash(state))
    ok = verify(state, "0x...")
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import math
import re
from decimal import Decimal
from typing import Awaitable, Callable, Optional, Sequence

from config.tiles_schema import GameState, Row

logger = logging.getLogger("aarktiles.fair")

HOUSE_EDGE = 0.05
HASH_PREFIX = "0x"
ROW_SEPARATOR = "-row"

Digest = Callable[[str], str]
AsyncDigest = Callable[[str], Awaitable[str]]


class InvalidInputError(ValueError):
    """Raised for malformed or missing verification input."""


# ═══════════════════════════════════════════════════════════════
# Digest
# ═══════════════════════════════════════════════════════════════

def sha256_hex(data: str) -> str:
    """SHA-256 of the UTF-8 bytes of data, lowercase hex."""
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


async def async_sha256_hex(data: str) -> str:
    """Awaitable SHA-256, hashed off the event loop."""
    return await asyncio.to_thread(sha256_hex, data)


# ═══════════════════════════════════════════════════════════════
# Bomb placement + multipliers
# ═══════════════════════════════════════════════════════════════

def bomb_hash_source(seed: str, row_index: int) -> str:
    return f"{seed}{ROW_SEPARATOR}{row_index}"


def bomb_index_from_digest(hex_digest: str, tile_count: int) -> int:
    """First 8 hex chars (32 bits) of the digest, modulo the row size."""
    return int(hex_digest[:8], 16) % tile_count


def derive_bomb_index(seed: str, row_index: int, tile_count: int,
                      digest: Digest = sha256_hex) -> int:
    """Deterministic bomb position for one row, in [0, tile_count)."""
    return bomb_index_from_digest(digest(bomb_hash_source(seed, row_index)), tile_count)


def _fair_odds(tiles: int) -> float:
    # 1 / (1 - 1/tiles) with IEEE semantics: tiles == 1 gives inf, not an error
    survive = 1 - (1 / tiles if tiles else math.inf)
    if survive == 0:
        return math.inf
    return 1 / survive


def calculate_row_multipliers(tile_counts: Sequence[int],
                              house_edge: float = HOUSE_EDGE) -> list[float]:
    """Cumulative payout multiplier for each row.

    The running product holds the undiscounted fair odds; each emitted
    multiplier is that product times (1 - house_edge). A one-tile row
    yields inf and every later row stays inf.
    """
    multipliers = []
    current = 1.0
    for tiles in tile_counts:
        current *= _fair_odds(tiles)
        multipliers.append(current * (1 - house_edge))
    return multipliers


def reconstruct_rows(tile_counts: Sequence[int], seed: str,
                     digest: Digest = sha256_hex) -> list[Row]:
    """Rebuild every row of the board, in input order."""
    multipliers = calculate_row_multipliers(tile_counts)
    rows = []
    for i, tiles in enumerate(tile_counts):
        rows.append(Row(
            tile_count=tiles,
            bomb_tile_index=derive_bomb_index(seed, i, tiles, digest),
            multiplier=multipliers[i],
        ))
    return rows


async def reconstruct_rows_async(tile_counts: Sequence[int], seed: str,
                                 digest: AsyncDigest = async_sha256_hex) -> list[Row]:
    """Like reconstruct_rows, but fans the per-row digests out concurrently.

    gather() returns results in submission order, so rows come back in
    input order whatever order the digests finish in.
    """
    multipliers = calculate_row_multipliers(tile_counts)
    digests = await asyncio.gather(
        *(digest(bomb_hash_source(seed, i)) for i in range(len(tile_counts)))
    )
    return [
        Row(
            tile_count=tiles,
            bomb_tile_index=bomb_index_from_digest(digests[i], tiles),
            multiplier=multipliers[i],
        )
        for i, tiles in enumerate(tile_counts)
    ]


def build_game_state(version: str, tile_counts: Sequence[int], seed: str,
                     selected_tiles: Optional[Sequence[Optional[int]]] = None,
                     digest: Digest = sha256_hex) -> GameState:
    return GameState(
        version=version,
        rows=reconstruct_rows(tile_counts, seed, digest),
        seed=seed,
        selected_tiles=list(selected_tiles or []),
    )


# ═══════════════════════════════════════════════════════════════
# Canonical serialization (JSON.stringify compatible)
# ═══════════════════════════════════════════════════════════════

def js_number(value) -> str:
    """Render a number the way JavaScript's JSON.stringify does."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if not math.isfinite(value):
        return "null"
    if value.is_integer():
        if abs(value) < 2 ** 53:
            return str(int(value))  # exact; also folds -0.0 to "0"
        if abs(value) < 1e21:
            # shortest round-trip digits, zero padded (not the exact binary value)
            return format(Decimal(repr(value)).to_integral_value(), "f")
    text = repr(value)
    if "e" not in text:
        return text
    mantissa, exponent = text.split("e")
    exp = int(exponent)
    if -7 < exp < 21:
        return format(Decimal(text), "f")
    return f"{mantissa}e{'+' if exp > 0 else '-'}{abs(exp)}"


def canonical_json(obj) -> str:
    """Compact JSON with insertion-ordered keys and JS number formatting."""
    if obj is None:
        return "null"
    if isinstance(obj, str):
        return json.dumps(obj, ensure_ascii=False)
    if isinstance(obj, (bool, int, float)):
        return js_number(obj)
    if isinstance(obj, dict):
        return "{" + ",".join(
            f"{json.dumps(str(k), ensure_ascii=False)}:{canonical_json(v)}"
            for k, v in obj.items()
        ) + "}"
    if isinstance(obj, (list, tuple)):
        return "[" + ",".join(canonical_json(v) for v in obj) + "]"
    raise TypeError(f"Cannot serialize {type(obj).__name__} canonically")


def commitment_text(game_state: GameState) -> str:
    """The exact text that is hashed into the commitment."""
    return canonical_json(game_state.commitment_payload())


# ═══════════════════════════════════════════════════════════════
# Commitment
# ═══════════════════════════════════════════════════════════════

def generate_game_hash(game_state: GameState, digest: Digest = sha256_hex) -> str:
    return HASH_PREFIX + digest(commitment_text(game_state))


async def generate_game_hash_async(game_state: GameState,
                                   digest: AsyncDigest = async_sha256_hex) -> str:
    return HASH_PREFIX + await digest(commitment_text(game_state))


def normalize_hash(value: str) -> str:
    """Trim, lowercase and 0x-prefix a commitment for comparison."""
    text = (value or "").strip().lower()
    if not text.startswith(HASH_PREFIX):
        text = HASH_PREFIX + text
    return text


def hashes_match(computed: str, expected: str) -> bool:
    return normalize_hash(computed) == normalize_hash(expected)


def verify(game_state: GameState, expected_hash: str,
           digest: Digest = sha256_hex) -> bool:
    """True when the rebuilt state hashes to the published commitment."""
    computed = generate_game_hash(game_state, digest)
    match = hashes_match(computed, expected_hash)
    if not match:
        logger.info(f"Commitment mismatch: computed={computed} "
                    f"expected={normalize_hash(expected_hash)}")
    return match


# ═══════════════════════════════════════════════════════════════
# Input parsing helpers
# ═══════════════════════════════════════════════════════════════

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def parse_js_int(text: str) -> Optional[int]:
    """Leading base-10 integer of text, as parseInt(text.trim(), 10) reads it.

    Returns None where JavaScript would produce NaN.
    """
    m = _LEADING_INT.match(text or "")
    return int(m.group(1)) if m else None


def parse_tile_counts(rows_input: str) -> list[int]:
    """Parse the comma-separated row sizes, rejecting anything unusable."""
    counts = []
    for item in rows_input.split(","):
        value = parse_js_int(item)
        if value is None:
            raise InvalidInputError("Invalid tile counts (must be comma-separated numbers)")
        if value < 1:
            raise InvalidInputError(f"Invalid tile count {value}: every row needs at least one tile")
        counts.append(value)
    return counts
