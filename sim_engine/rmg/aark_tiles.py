"""Aark-tile — one hidden bomb per row, cumulative multiplier per cleared row."""
import logging
import re
from typing import Mapping, Optional
from urllib.parse import unquote

from config.settings import VerifierConfig
from config.tiles_schema import GameParams, GameState
from sim_engine.rmg.base import BaseRMGEngine
from tools.tiles_fair import (
    HOUSE_EDGE, InvalidInputError, build_game_state, calculate_row_multipliers,
    generate_game_hash, parse_js_int, parse_tile_counts, reconstruct_rows_async,
)

logger = logging.getLogger("aarktiles.rmg")

# "%" not followed by two hex digits; decodeURIComponent rejects these
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def parse_selected_tiles(raw: Optional[str]) -> list:
    """Player selections, one per row. Display only, so bad data means no selections."""
    if not raw:
        return []
    if _BAD_ESCAPE.search(raw):
        logger.debug(f"Ignoring malformed selectedTiles escape: {raw!r}")
        return []
    try:
        decoded = unquote(raw, errors="strict")
    except UnicodeDecodeError:
        logger.debug(f"Ignoring undecodable selectedTiles: {raw!r}")
        return []
    return [parse_js_int(s) for s in decoded.split(",")]


class AarkTilesEngine(BaseRMGEngine):
    game_type = "aarkTiles"
    display_name = "Aark-tile"
    required_params = ("version", "rows", "seed", "hash")
    optional_params = ("selectedTiles",)
    house_edge = HOUSE_EDGE

    # ── Verification ──────────────────────────────────────────

    def parse_params(self, params: Mapping[str, str]) -> GameParams:
        # version falls back to the default tag; the rest must be present
        missing = [p for p in self.missing_params(params) if p != "version"]
        if missing:
            raise InvalidInputError(f"Missing required parameters: {', '.join(missing)}")

        # Opaque tag: hashed exactly as received, default only when empty
        version = str(params.get("version") or "") or VerifierConfig.DEFAULT_VERSION
        if not VerifierConfig.is_supported_version(version):
            logger.warning(f"Unknown {self.game_type} version {version!r}; verifying anyway")

        tile_counts = parse_tile_counts(str(params["rows"]))
        if len(tile_counts) > VerifierConfig.MAX_ROWS:
            raise InvalidInputError(
                f"Too many rows: {len(tile_counts)} (max {VerifierConfig.MAX_ROWS})")

        return self.build_params(
            version=version,
            tile_counts=tile_counts,
            seed=str(params["seed"]),
            expected_hash=str(params["hash"]),
            selected_tiles=parse_selected_tiles(params.get("selectedTiles")),
        )

    def reconstruct_game_state(self, game_params: GameParams) -> GameState:
        return build_game_state(
            game_params.version,
            game_params.tile_counts,
            game_params.seed,
            game_params.selected_tiles,
        )

    async def reconstruct_game_state_async(self, game_params: GameParams) -> GameState:
        rows = await reconstruct_rows_async(game_params.tile_counts, game_params.seed)
        return GameState(
            version=game_params.version,
            rows=rows,
            seed=game_params.seed,
            selected_tiles=game_params.selected_tiles,
        )

    def generate_game_hash(self, game_state: GameState) -> str:
        return generate_game_hash(game_state)

    def form_fields(self) -> list:
        """Input form description; version is fixed to the default tag."""
        return [
            {"name": "version", "label": None, "type": "hidden",
             "value": VerifierConfig.DEFAULT_VERSION},
            {"name": "rows", "label": "Row Tile Counts", "type": "textarea"},
            {"name": "seed", "label": "Seed", "type": "text"},
            {"name": "hash", "label": "Hash", "type": "text"},
        ]

    # ── Math model ────────────────────────────────────────────

    def generate_config(self, tile_counts=None, rows: int = 8, tiles: int = 3, **kw) -> dict:
        if tile_counts is None:
            tile_counts = [max(2, tiles)] * max(1, rows)
        tile_counts = [int(t) for t in tile_counts]
        if any(t < 2 for t in tile_counts):
            raise ValueError("Every row needs at least 2 tiles for a finite payout")
        return {
            "game_type": self.game_type,
            "tile_counts": tile_counts,
            "multipliers": calculate_row_multipliers(tile_counts),
            "house_edge": self.house_edge,
        }

    def simulate_round(self, config: dict, rng) -> float:
        tile_counts = config["tile_counts"]
        multipliers = config["multipliers"]

        # Player picks how many rows to climb before cashing out
        target = rng.randint(1, len(tile_counts))

        for i in range(target):
            bomb = rng.randrange(tile_counts[i])
            if rng.randrange(tile_counts[i]) == bomb:
                return 0.0  # Hit the bomb

        return multipliers[target - 1]

    def edge_report(self, tile_counts) -> list:
        """Per-row survival odds, fair and published multipliers, effective RTP.

        Each published multiplier is the cumulative fair multiplier times
        (1 - house_edge), so effective RTP is the same at every row.
        """
        multipliers = calculate_row_multipliers(tile_counts, self.house_edge)
        report = []
        survival = 1.0
        for i, tiles in enumerate(tile_counts):
            survival *= (tiles - 1) / tiles
            fair = 1 / survival if survival > 0 else float("inf")
            rtp = multipliers[i] * survival
            report.append({
                "row": i + 1,
                "tiles": tiles,
                "survival_probability": survival,
                "fair_multiplier": fair,
                "multiplier": multipliers[i],
                "effective_rtp": rtp,
                "effective_house_edge": 1 - rtp,
            })
        return report
