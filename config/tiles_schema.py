"""
AARKTILES — Board & Verification Schema

Pydantic models shared by the fairness core, the game engine, the CLI and
the web verifier.

    Row                — one reconstructed row (tiles, bomb index, multiplier)
    GameState          — version + rows + seed, plus the display-only selection overlay
    GameParams         — parsed verification input
    VerificationResult — verdict + both hashes + the rebuilt state

Field aliases are the wire names used in the commitment JSON, so
`model_dump(by_alias=True)` produces the exact published key names.
"""

from __future__ import annotations

import math
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Row(BaseModel):
    """A single reconstructed row. Key order is part of the commitment."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    tile_count: int = Field(alias="tiles")
    bomb_tile_index: int = Field(alias="bombTileIndex")
    multiplier: float                  # inf for a one-tile row


class GameState(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    version: str
    rows: list[Row] = Field(default_factory=list)
    seed: str
    # Display only; never hashed
    selected_tiles: list[Optional[int]] = Field(default_factory=list, alias="selectedTiles")

    def commitment_payload(self) -> dict:
        """{version, rows, seed} in hashing order, without the selection overlay."""
        return {
            "version": self.version,
            "rows": [r.model_dump(by_alias=True) for r in self.rows],
            "seed": self.seed,
        }

    def selected_tile(self, row_index: int) -> Optional[int]:
        if 0 <= row_index < len(self.selected_tiles):
            return self.selected_tiles[row_index]
        return None

    def to_dict(self) -> dict:
        """JSON-safe view for display; non-finite multipliers become null."""
        data = self.commitment_payload()
        for row in data["rows"]:
            if not math.isfinite(row["multiplier"]):
                row["multiplier"] = None
        data["selectedTiles"] = list(self.selected_tiles)
        return data


class GameParams(BaseModel):
    """Verification input after parsing."""
    version: str = Field(min_length=1)
    tile_counts: list[Annotated[int, Field(ge=1)]]
    seed: str = Field(min_length=1)
    expected_hash: str = Field(min_length=1)
    selected_tiles: list[Optional[int]] = Field(default_factory=list)

    @field_validator("expected_hash")
    @classmethod
    def _normalize_hash(cls, v: str) -> str:
        # A blank hash is still a hash; it just never matches
        return v.strip().lower()


class VerificationResult(BaseModel):
    game: str
    match: bool
    computed_hash: str
    expected_hash: str
    game_state: GameState

    def to_dict(self) -> dict:
        return {
            "game": self.game,
            "match": self.match,
            "computed_hash": self.computed_hash,
            "expected_hash": self.expected_hash,
            "game_state": self.game_state.to_dict(),
        }
