#!/usr/bin/env python3
"""
AARKTILES — Verifier CLI

Usage:
    python -m tools.tiles_cli verify --rows 3,3,4 --seed abc --hash 0x9f...
    python -m tools.tiles_cli verify --rows 3,3 --seed abc --hash 0x9f... --selected 1,0 --raw
    python -m tools.tiles_cli hash --rows 3,3,4 --seed abc
    python -m tools.tiles_cli report --rows 3,3,4 --simulate

Exit status: 0 = commitment verified, 1 = mismatch, 2 = invalid input.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config.settings import VerifierConfig
from sim_engine.rmg import GAME_TYPES, get_game_engine
from tools.tiles_fair import InvalidInputError, build_game_state, generate_game_hash, parse_tile_counts
from tools.tiles_render import BoardView, format_multiplier

logger = logging.getLogger("aarktiles.cli")

EXIT_MATCH, EXIT_MISMATCH, EXIT_INVALID = 0, 1, 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Verify provably fair Aark-tile games")
    parser.add_argument("--log-level", type=str, default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    v = sub.add_parser("verify", help="Rebuild a board and check its commitment")
    v.add_argument("--game", type=str, default=GAME_TYPES[0], help="Game type")
    v.add_argument("--version", dest="game_version", type=str, default=VerifierConfig.DEFAULT_VERSION)
    v.add_argument("--rows", type=str, required=True, help="Comma-separated tile counts")
    v.add_argument("--seed", type=str, required=True)
    v.add_argument("--hash", dest="expected_hash", type=str, required=True)
    v.add_argument("--selected", type=str, default=None, help="Comma-separated picked tiles")
    v.add_argument("--raw", action="store_true", help="Show raw JSON instead of the board")
    v.add_argument("--json", action="store_true", help="Print the result as JSON")

    h = sub.add_parser("hash", help="Print the commitment for a board")
    h.add_argument("--version", dest="game_version", type=str, default=VerifierConfig.DEFAULT_VERSION)
    h.add_argument("--rows", type=str, required=True)
    h.add_argument("--seed", type=str, required=True)

    r = sub.add_parser("report", help="Per-row payout and house edge report")
    r.add_argument("--rows", type=str, required=True)
    r.add_argument("--simulate", action="store_true", help="Add a Monte Carlo RTP check")
    r.add_argument("--rounds", type=int, default=VerifierConfig.SIM_ROUNDS)
    return parser


def cmd_verify(args, console: Console) -> int:
    engine = get_game_engine(args.game)
    params = {
        "version": args.game_version,
        "rows": args.rows,
        "seed": args.seed,
        "hash": args.expected_hash,
        "selectedTiles": args.selected,
    }
    result = engine.verify(params)

    if args.json:
        console.print_json(json.dumps(result.to_dict()))
    else:
        view = BoardView(result.game_state, showing_visual=not args.raw)
        if view.showing_visual:
            console.print(view.render())
        else:
            console.print_json(view.render())
        verdict = "[bold green]✅ Commitment verified[/bold green]" if result.match \
            else "[bold red]❌ Commitment mismatch[/bold red]"
        console.print(Panel(
            f"{verdict}\n\n"
            f"Computed: {result.computed_hash}\n"
            f"Expected: {result.expected_hash}",
            title=engine.display_name, border_style="green" if result.match else "red",
        ))
    return EXIT_MATCH if result.match else EXIT_MISMATCH


def cmd_hash(args, console: Console) -> int:
    state = build_game_state(args.game_version, parse_tile_counts(args.rows), args.seed)
    console.print(generate_game_hash(state))
    return EXIT_MATCH


def cmd_report(args, console: Console) -> int:
    engine = get_game_engine(GAME_TYPES[0])
    tile_counts = parse_tile_counts(args.rows)

    table = Table(title="Payout table")
    for col in ("Row", "Tiles", "P(survive)", "Fair", "Paid", "RTP"):
        table.add_column(col, justify="right")
    for entry in engine.edge_report(tile_counts):
        table.add_row(
            str(entry["row"]), str(entry["tiles"]),
            f"{entry['survival_probability']:.6f}",
            format_multiplier(entry["fair_multiplier"]),
            format_multiplier(entry["multiplier"]),
            f"{entry['effective_rtp'] * 100:.2f}%",
        )
    console.print(table)

    if args.simulate:
        config = engine.generate_config(tile_counts=tile_counts)
        console.print(f"[cyan]Running {args.rounds:,}-round simulation...[/cyan]")
        sim = engine.simulate(config, rounds=args.rounds)
        console.print(f"   RTP: {sim.rtp * 100:.2f}% "
                      f"(theoretical {(1 - sim.house_edge_theoretical) * 100:.2f}%)")
        console.print(f"   Hit Rate: {sim.hit_rate * 100:.1f}%")
        console.print(f"   Max Win Hit: {sim.max_multiplier_hit:.2f}x")
    return EXIT_MATCH


COMMANDS = {"verify": cmd_verify, "hash": cmd_hash, "report": cmd_report}


def main(argv=None, console: Console = None) -> int:
    args = build_parser().parse_args(argv)
    VerifierConfig.configure_logging(args.log_level)
    console = console or Console()

    try:
        return COMMANDS[args.command](args, console)
    except (InvalidInputError, ValueError) as e:
        logger.debug(f"{args.command} rejected input: {e}")
        console.print(f"[red]❌ {e}[/red]")
        return EXIT_INVALID


if __name__ == "__main__":
    sys.exit(main())
