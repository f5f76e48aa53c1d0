"""
AARKTILES — Board Rendering

Presentation only: terminal (rich) and HTML views of a reconstructed board,
with the player's selections overlaid. Nothing here touches the commitment.
"""

import html
import json
import math

from rich.table import Table

from config.settings import VerifierConfig
from config.tiles_schema import GameState

TILE_TITLES = {
    "safe": "",
    "bomb": "Bomb Tile",
    "selected": "Selected Tile",
    "selected_bomb": "Selected Bomb Tile",
}

_TERMINAL_TILES = {
    "safe": "[dim]■[/dim]",
    "bomb": "[red]■[/red]",
    "selected": "[green]■[/green]",
    "selected_bomb": "💣",
}


def tile_state(game_state: GameState, row_index: int, tile_index: int) -> str:
    row = game_state.rows[row_index]
    is_bomb = tile_index == row.bomb_tile_index
    is_selected = game_state.selected_tile(row_index) == tile_index
    if is_bomb and is_selected:
        return "selected_bomb"
    if is_bomb:
        return "bomb"
    if is_selected:
        return "selected"
    return "safe"


def format_multiplier(value: float) -> str:
    if not math.isfinite(value):
        return "∞" if value > 0 else "NaN"
    return f"{value:.4f}x"


def is_collapsed(tile_count: int, max_tiles: int = None) -> bool:
    """Rows wider than the render cap are summarized instead of drawn tile by tile."""
    cap = VerifierConfig.RENDER_MAX_TILES if max_tiles is None else max_tiles
    return tile_count > cap


def row_summary(game_state: GameState, row_index: int) -> str:
    row = game_state.rows[row_index]
    pick = game_state.selected_tile(row_index)
    text = f"{row.tile_count} tiles, bomb at {row.bomb_tile_index}"
    if pick is not None:
        text += f", picked {pick}"
    return text


def board_table(game_state: GameState) -> Table:
    """Rich table of the board, top row first; labels count from 1."""
    table = Table(title=f"Aark-tile board ({game_state.version})", show_lines=False)
    table.add_column("Row", justify="right", style="bold")
    table.add_column("Tiles")
    table.add_column("Bomb", justify="right")
    table.add_column("Pick", justify="right")
    table.add_column("Multiplier", justify="right", style="cyan")

    for i in reversed(range(len(game_state.rows))):
        row = game_state.rows[i]
        if is_collapsed(row.tile_count):
            tiles = f"[dim]{row_summary(game_state, i)}[/dim]"
        else:
            tiles = " ".join(_TERMINAL_TILES[tile_state(game_state, i, t)]
                             for t in range(row.tile_count))
        pick = game_state.selected_tile(i)
        table.add_row(
            str(i + 1),
            tiles,
            str(row.bomb_tile_index),
            "-" if pick is None else str(pick),
            format_multiplier(row.multiplier),
        )
    return table


def board_html(game_state: GameState) -> str:
    """HTML tile grid: .row-container > .row-label + .row > .tile[.bomb][.selected]."""
    parts = []
    for i, row in enumerate(game_state.rows):
        if is_collapsed(row.tile_count):
            parts.append(
                f'<div class="row-container"><div class="row-label">{i + 1}</div>'
                f'<div class="row row-summary">{html.escape(row_summary(game_state, i))}</div></div>'
            )
            continue
        tiles = []
        for t in range(row.tile_count):
            state = tile_state(game_state, i, t)
            classes = "tile"
            if state in ("bomb", "selected_bomb"):
                classes += " bomb"
            if state in ("selected", "selected_bomb"):
                classes += " selected"
            icon = "💣" if state == "selected_bomb" else ""
            tiles.append(
                f'<div class="{classes}" title="{html.escape(TILE_TITLES[state])}">{icon}</div>'
            )
        parts.append(
            f'<div class="row-container"><div class="row-label">{i + 1}</div>'
            f'<div class="row">{"".join(tiles)}</div></div>'
        )
    return "".join(parts)


def raw_json(game_state: GameState) -> str:
    """Indented JSON of the rebuilt rows, as shown in the raw view."""
    return json.dumps(game_state.to_dict()["rows"], indent=2, ensure_ascii=False)


class BoardView:
    """Visual/raw toggle for one rendered board. Owns its own view flag."""

    def __init__(self, game_state: GameState, showing_visual: bool = True):
        self.game_state = game_state
        self.showing_visual = showing_visual

    @property
    def button_label(self) -> str:
        return "Show Raw JSON" if self.showing_visual else "Show Visual"

    def toggle(self) -> str:
        """Flip the view; returns the new toggle button label."""
        self.showing_visual = not self.showing_visual
        return self.button_label

    def render(self):
        return board_table(self.game_state) if self.showing_visual else raw_json(self.game_state)
