#!/usr/bin/env python3
"""
AARKTILES — Unit & Integration Test Suite

Run: python tests.py
     python tests.py -v                 # verbose
     python tests.py TestCommitment     # run specific class

Test categories:
  TestBombIndex        — seed/row → bomb position derivation
  TestMultipliers      — cumulative payout table, degenerate rows
  TestReconstruction   — row rebuild, sync vs async ordering
  TestCanonicalJson    — JSON.stringify-compatible serialization
  TestCommitment       — published hash round-trip, tamper sensitivity
  TestParsing          — parameter parsing and invalid input
  TestEngine           — registry, verify pipeline, math report
  TestRendering        — tile states, HTML board, view toggle

Expected hashes were produced by the browser verifier with the same inputs.
"""

import asyncio
import math
import sys
import unittest
from pathlib import Path

# ── Ensure project root is on sys.path ──
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from config.tiles_schema import GameState, Row
from sim_engine.rmg import GAME_TYPES, get_game_engine
from sim_engine.rmg.aark_tiles import AarkTilesEngine, parse_selected_tiles
from tools.tiles_fair import (
    HOUSE_EDGE, InvalidInputError, build_game_state, calculate_row_multipliers,
    canonical_json, commitment_text, derive_bomb_index, generate_game_hash,
    hashes_match, js_number, normalize_hash, parse_js_int, parse_tile_counts,
    reconstruct_rows, reconstruct_rows_async, sha256_hex, verify,
)

ABC_3_3_HASH = "0x8c52f74ab7159cd26bc9a19d3e54b8b540e59d68e74a630e1f29bf22912c7c4a"
ABC_EMPTY_HASH = "0x4e38c41a0e94fe4f43051a93c7f34d9776ee5eb3c76832aa58b3f82698224e84"
ABC_ONE_TILE_HASH = "0xb45e25f266b8b55e59e1cdb3491a31f8ab8e82027846bb903624883b019dbe0d"
LADDER_HASH = "0x8cbca7960cceaf411d2785e3219553e70db4f3f9c404a7d04aff28d0bcfa3731"
LADDER = [2, 3, 4, 5, 6, 7, 8, 9, 10]
# Sixty two-tile rows: multipliers pass 2**53 and print as padded integers
DOUBLING_60_HASH = "0xfe851beead1511bc2eb943aa5568b6720b3c161cb8f410b2bc4b0617a3acb9c5"
PADDED_VERSION_HASH = "0x72050fea54dabd136904d4ce72c0607f7bc632c52553d08bd65828990f24c70d"
BLANK_SEED_HASH = "0xf435917810b9c2eb9f15c7b339f5cae824f78270d649533ca57912f2b3f8378d"


# ============================================================
# Bomb Index
# ============================================================

class TestBombIndex(unittest.TestCase):

    def test_digest_is_sha256_hex(self):
        self.assertEqual(
            sha256_hex("abc-row0"),
            "67faf645a298058f3978d3039da137019275ed2d4489da70945d0b58a3a0b0d5",
        )

    def test_scenario_abc(self):
        """0x67faf645 % 3 == 2, 0x5e88ad0f % 3 == 1."""
        self.assertEqual(derive_bomb_index("abc", 0, 3), 0x67faf645 % 3)
        self.assertEqual(derive_bomb_index("abc", 0, 3), 2)
        self.assertEqual(derive_bomb_index("abc", 1, 3), 1)

    def test_deterministic(self):
        for i in range(10):
            self.assertEqual(derive_bomb_index("seed", i, 7), derive_bomb_index("seed", i, 7))

    def test_in_range(self):
        for tiles in range(1, 12):
            for i in range(20):
                idx = derive_bomb_index("range-check", i, tiles)
                self.assertGreaterEqual(idx, 0)
                self.assertLess(idx, tiles)

    def test_custom_digest(self):
        """The digest is a black box; only its first 8 hex chars matter."""
        seen = []

        def fake(data):
            seen.append(data)
            return "0000000a" + "f" * 56

        self.assertEqual(derive_bomb_index("s", 4, 4, digest=fake), 10 % 4)
        self.assertEqual(seen, ["s-row4"])

    def test_zero_tiles_is_an_error(self):
        with self.assertRaises(ZeroDivisionError):
            derive_bomb_index("abc", 0, 0)


# ============================================================
# Multipliers
# ============================================================

class TestMultipliers(unittest.TestCase):

    def test_scenario_3_3(self):
        m = calculate_row_multipliers([3, 3])
        self.assertEqual(len(m), 2)
        self.assertAlmostEqual(m[0], 1.425)
        self.assertAlmostEqual(m[1], 1.5 * 1.5 * 0.95)
        # Bit-exact with the browser verifier
        self.assertEqual(m, [1.4249999999999998, 2.1374999999999993])

    def test_edge_applied_to_cumulative_fair_odds(self):
        m = calculate_row_multipliers(LADDER)
        fair = 1.0
        for i, tiles in enumerate(LADDER):
            fair *= tiles / (tiles - 1)
            self.assertAlmostEqual(m[i], fair * (1 - HOUSE_EDGE))

    def test_monotonic_for_multi_tile_rows(self):
        m = calculate_row_multipliers([2, 5, 3, 10, 4, 2])
        for a, b in zip(m, m[1:]):
            self.assertGreater(b, a)

    def test_empty(self):
        self.assertEqual(calculate_row_multipliers([]), [])

    def test_one_tile_row_propagates_infinity(self):
        """A 1-tile row divides by zero; the value propagates instead of raising."""
        m = calculate_row_multipliers([1])
        self.assertTrue(math.isinf(m[0]))
        self.assertGreater(m[0], 0)

        m = calculate_row_multipliers([3, 1, 3])
        self.assertAlmostEqual(m[0], 1.425)
        self.assertTrue(math.isinf(m[1]))
        self.assertTrue(math.isinf(m[2]))


# ============================================================
# Reconstruction
# ============================================================

class TestReconstruction(unittest.TestCase):

    def test_rows_in_input_order(self):
        rows = reconstruct_rows([5, 2, 9], "order")
        self.assertEqual([r.tile_count for r in rows], [5, 2, 9])
        for i, r in enumerate(rows):
            self.assertEqual(r.bomb_tile_index, derive_bomb_index("order", i, r.tile_count))

    def test_known_board(self):
        rows = reconstruct_rows([5, 5, 5, 5, 5], "seed-42")
        self.assertEqual([r.bomb_tile_index for r in rows], [3, 3, 4, 2, 2])
        self.assertEqual([r.multiplier for r in rows],
                         [1.1875, 1.484375, 1.85546875, 2.3193359375, 2.899169921875])

    def test_empty_rows(self):
        self.assertEqual(reconstruct_rows([], "abc"), [])

    def test_async_matches_sync(self):
        sync_rows = reconstruct_rows(LADDER, "seed-42")
        async_rows = asyncio.run(reconstruct_rows_async(LADDER, "seed-42"))
        self.assertEqual(async_rows, sync_rows)

    def test_async_keeps_order_when_digests_finish_out_of_order(self):
        n = 6

        async def slow_first(data):
            row = int(data.rsplit("-row", 1)[1])
            await asyncio.sleep(0.002 * (n - row))  # row 0 finishes last
            return sha256_hex(data)

        rows = asyncio.run(reconstruct_rows_async([4] * n, "xyz", digest=slow_first))
        self.assertEqual(rows, reconstruct_rows([4] * n, "xyz"))

    def test_build_game_state_keeps_selection(self):
        state = build_game_state("v1", [3, 3], "abc", [0, None])
        self.assertEqual(state.version, "v1")
        self.assertEqual(state.seed, "abc")
        self.assertEqual(state.selected_tiles, [0, None])
        self.assertEqual(len(state.rows), 2)


# ============================================================
# Canonical JSON
# ============================================================

class TestCanonicalJson(unittest.TestCase):

    def test_number_formatting_matches_javascript(self):
        cases = [
            (2.0, "2"),
            (-0.0, "0"),
            (1.9, "1.9"),
            (1.4249999999999998, "1.4249999999999998"),
            (2.0 ** 53, "9007199254740992"),
            (3.373466116592435e16, "33734661165924350"),
            (1.2345678901234568e20, "123456789012345680000"),
            (1e21, "1e+21"),
            (1.5e22, "1.5e+22"),
            (1e-5, "0.00001"),
            (1.5e-6, "0.0000015"),
            (1e-7, "1e-7"),
            (2.5e-8, "2.5e-8"),
            (math.inf, "null"),
            (-math.inf, "null"),
            (math.nan, "null"),
            (7, "7"),
        ]
        for value, expected in cases:
            self.assertEqual(js_number(value), expected, f"{value!r}")

    def test_compact_ordered(self):
        text = canonical_json({"b": 1, "a": [1.5, None, "x"], "c": {"z": True}})
        self.assertEqual(text, '{"b":1,"a":[1.5,null,"x"],"c":{"z":true}}')

    def test_non_ascii_and_escapes(self):
        self.assertEqual(canonical_json('é "q"\n'), '"é \\"q\\"\\n"')

    def test_commitment_text(self):
        state = build_game_state("v1", [3, 3], "abc")
        self.assertEqual(
            commitment_text(state),
            '{"version":"v1","rows":[{"tiles":3,"bombTileIndex":2,"multiplier":1.4249999999999998},'
            '{"tiles":3,"bombTileIndex":1,"multiplier":2.1374999999999993}],"seed":"abc"}',
        )

    def test_selection_not_in_payload(self):
        state = build_game_state("v1", [3, 3], "abc", [1, 2])
        self.assertNotIn("selected", commitment_text(state))

    def test_unserializable(self):
        with self.assertRaises(TypeError):
            canonical_json({"x": object()})


# ============================================================
# Commitment
# ============================================================

class TestCommitment(unittest.TestCase):

    def test_published_hash(self):
        state = build_game_state("v1", [3, 3], "abc")
        self.assertEqual(generate_game_hash(state), ABC_3_3_HASH)
        self.assertTrue(verify(state, ABC_3_3_HASH))

    def test_longer_board(self):
        state = build_game_state("v1", LADDER, "seed-42")
        self.assertTrue(verify(state, LADDER_HASH))

    def test_large_integral_multipliers_hash(self):
        """Past 2**53 the digits are the shortest round-trip ones, zero padded."""
        state = build_game_state("v1", [2] * 60, "x")
        self.assertIn('"multiplier":34227357168015770}', commitment_text(state))
        self.assertTrue(verify(state, DOUBLING_60_HASH))

    def test_version_and_seed_hashed_verbatim(self):
        self.assertTrue(verify(build_game_state(" v1 ", [3, 3], "abc"), PADDED_VERSION_HASH))
        self.assertTrue(verify(build_game_state("v1", [3, 3], "   "), BLANK_SEED_HASH))

    def test_empty_rows_hash(self):
        """Scenario B: no rows still has a defined commitment."""
        state = build_game_state("v1", [], "abc")
        self.assertEqual(commitment_text(state), '{"version":"v1","rows":[],"seed":"abc"}')
        self.assertEqual(generate_game_hash(state), ABC_EMPTY_HASH)

    def test_one_tile_row_hash(self):
        """Scenario D: infinite multiplier serializes as null, like JSON.stringify."""
        state = build_game_state("v1", [1], "abc")
        self.assertIn('"multiplier":null', commitment_text(state))
        self.assertTrue(verify(state, ABC_ONE_TILE_HASH))

    def test_expected_hash_normalization(self):
        """Scenario C: case, whitespace and prefix don't matter."""
        state = build_game_state("v1", [3, 3], "abc")
        bare = ABC_3_3_HASH[2:]
        for expected in (bare, bare.upper(), "  0X" + bare.upper() + "\n", "0x" + bare.upper()):
            self.assertTrue(verify(state, expected), expected)

    def test_normalize_hash(self):
        self.assertEqual(normalize_hash(" ABCD "), "0xabcd")
        self.assertEqual(normalize_hash("0xABCD"), "0xabcd")
        self.assertTrue(hashes_match("0xabcd", "ABCD"))
        self.assertFalse(hashes_match("0xabcd", "0xabce"))

    def test_selection_never_affects_commitment(self):
        for selection in ([], [0, 0], [2, 1], [None, 5], [9, 9, 9, 9]):
            state = build_game_state("v1", [3, 3], "abc", selection)
            self.assertTrue(verify(state, ABC_3_3_HASH), selection)

    def test_tamper_sensitivity(self):
        tampered = [
            build_game_state("v1", [3, 3], "abd"),
            build_game_state("v2", [3, 3], "abc"),
            build_game_state("v1", [4, 3], "abc"),
            build_game_state("v1", [3, 3, 3], "abc"),
            build_game_state("v1", [3], "abc"),
        ]
        for state in tampered:
            self.assertFalse(verify(state, ABC_3_3_HASH))

    def test_mismatch_is_not_an_error(self):
        state = build_game_state("v1", [3, 3], "abc")
        self.assertFalse(verify(state, "not-a-hash"))
        self.assertFalse(verify(state, ""))


# ============================================================
# Parsing
# ============================================================

class TestParsing(unittest.TestCase):

    def test_parse_js_int(self):
        self.assertEqual(parse_js_int(" 12 "), 12)
        self.assertEqual(parse_js_int("3.7"), 3)
        self.assertEqual(parse_js_int("4abc"), 4)
        self.assertEqual(parse_js_int("-2"), -2)
        self.assertIsNone(parse_js_int("abc"))
        self.assertIsNone(parse_js_int(""))

    def test_tile_counts(self):
        self.assertEqual(parse_tile_counts("3, 3,4"), [3, 3, 4])
        self.assertEqual(parse_tile_counts("1"), [1])

    def test_tile_counts_invalid(self):
        for bad in ("3,x", "", "3,,3", "0", "3,-1"):
            with self.assertRaises(InvalidInputError, msg=bad):
                parse_tile_counts(bad)

    def test_invalid_input_is_value_error(self):
        self.assertTrue(issubclass(InvalidInputError, ValueError))

    def test_selected_tiles(self):
        self.assertEqual(parse_selected_tiles(None), [])
        self.assertEqual(parse_selected_tiles(""), [])
        self.assertEqual(parse_selected_tiles("1,0,2"), [1, 0, 2])
        self.assertEqual(parse_selected_tiles("1%2C0"), [1, 0])
        self.assertEqual(parse_selected_tiles("1,x,2"), [1, None, 2])

    def test_selected_tiles_bad_encoding_means_no_selection(self):
        self.assertEqual(parse_selected_tiles("%ff%fe"), [])
        # Truncated escapes are rejected, not passed through as literal text
        self.assertEqual(parse_selected_tiles("1,%"), [])
        self.assertEqual(parse_selected_tiles("1,%4"), [])
        self.assertEqual(parse_selected_tiles("1,%zz"), [])


# ============================================================
# Engine
# ============================================================

class TestEngine(unittest.TestCase):

    def setUp(self):
        self.engine = get_game_engine("aarkTiles")
        self.params = {"version": "v1", "rows": "3,3", "seed": "abc", "hash": ABC_3_3_HASH}

    def test_registry(self):
        self.assertIn("aarkTiles", GAME_TYPES)
        self.assertIsInstance(get_game_engine("AARKTILES"), AarkTilesEngine)
        with self.assertRaises(ValueError):
            get_game_engine("roulette")

    def test_metadata(self):
        meta = self.engine.get_metadata()
        self.assertEqual(meta["display_name"], "Aark-tile")
        self.assertEqual(meta["required_params"], ["version", "rows", "seed", "hash"])
        self.assertEqual(meta["optional_params"], ["selectedTiles"])

    def test_verify_match(self):
        result = self.engine.verify(self.params)
        self.assertTrue(result.match)
        self.assertEqual(result.computed_hash, ABC_3_3_HASH)
        self.assertEqual(result.game, "aarkTiles")
        self.assertEqual([r.bomb_tile_index for r in result.game_state.rows], [2, 1])

    def test_verify_async(self):
        result = asyncio.run(self.engine.verify_async(self.params))
        self.assertTrue(result.match)
        self.assertEqual(result.game_state, self.engine.verify(self.params).game_state)

    def test_verify_mismatch(self):
        result = self.engine.verify({**self.params, "seed": "abd"})
        self.assertFalse(result.match)
        self.assertEqual(result.expected_hash, ABC_3_3_HASH)

    def test_version_defaults(self):
        result = self.engine.verify({**self.params, "version": ""})
        self.assertEqual(result.game_state.version, "v1")
        self.assertTrue(result.match)
        self.assertTrue(self.engine.verify({k: v for k, v in self.params.items() if k != "version"}).match)

    def test_unknown_version_still_verified(self):
        with self.assertLogs("aarktiles.rmg", level="WARNING"):
            result = self.engine.verify({**self.params, "version": "v9"})
        self.assertFalse(result.match)
        self.assertEqual(result.game_state.version, "v9")

    def test_expected_hash_normalized(self):
        result = self.engine.verify({**self.params, "hash": "  " + ABC_3_3_HASH.upper() + " "})
        self.assertTrue(result.match)

    def test_selection_overlay(self):
        result = self.engine.verify({**self.params, "selectedTiles": "2,0"})
        self.assertTrue(result.match)
        self.assertEqual(result.game_state.selected_tiles, [2, 0])

    def test_missing_params(self):
        for field in ("rows", "seed", "hash"):
            params = {**self.params, field: ""}
            with self.assertRaises(InvalidInputError) as ctx:
                self.engine.verify(params)
            self.assertIn(field, str(ctx.exception))
            params.pop(field)
            with self.assertRaises(InvalidInputError):
                self.engine.verify(params)

    def test_whitespace_is_a_value(self):
        """A blank seed or hash is verified, not reported missing."""
        result = self.engine.verify({**self.params, "seed": "   ", "hash": BLANK_SEED_HASH})
        self.assertTrue(result.match)
        self.assertEqual(result.game_state.seed, "   ")
        self.assertFalse(self.engine.verify({**self.params, "hash": "   "}).match)

    def test_version_not_trimmed(self):
        result = self.engine.verify({**self.params, "version": " v1 ", "hash": PADDED_VERSION_HASH})
        self.assertTrue(result.match)
        self.assertEqual(result.game_state.version, " v1 ")

    def test_invalid_rows(self):
        with self.assertRaises(InvalidInputError):
            self.engine.verify({**self.params, "rows": "3,three"})

    def test_result_to_dict(self):
        data = self.engine.verify({**self.params, "rows": "1"}).to_dict()
        self.assertEqual(data["game_state"]["rows"][0]["multiplier"], None)
        self.assertEqual(data["game_state"]["selectedTiles"], [])

    def test_edge_report_flat_rtp(self):
        report = self.engine.edge_report([3, 3])
        self.assertAlmostEqual(report[0]["survival_probability"], 2 / 3)
        self.assertAlmostEqual(report[1]["fair_multiplier"], 2.25)
        for row in report:
            self.assertAlmostEqual(row["effective_rtp"], 0.95)
            self.assertAlmostEqual(row["effective_house_edge"], HOUSE_EDGE)

    def test_generate_config(self):
        config = self.engine.generate_config(rows=4, tiles=3)
        self.assertEqual(config["tile_counts"], [3, 3, 3, 3])
        self.assertEqual(len(config["multipliers"]), 4)
        with self.assertRaises(ValueError):
            self.engine.generate_config(tile_counts=[3, 1])

    def test_simulation_rtp(self):
        config = self.engine.generate_config(tile_counts=[3, 3, 4])
        sim = self.engine.simulate(config, rounds=20_000, seed=7)
        self.assertEqual(sim.rounds, 20_000)
        self.assertAlmostEqual(sim.rtp, 0.95, delta=0.05)
        self.assertLess(sim.confidence_95[0], sim.confidence_95[1])
        self.assertIn("0x", sim.to_dict()["distribution"])


# ============================================================
# Rendering
# ============================================================

class TestRendering(unittest.TestCase):

    def setUp(self):
        # Bombs at 2 then 1
        self.state = build_game_state("v1", [3, 3], "abc", [2, 0])

    def test_tile_states(self):
        from tools.tiles_render import tile_state
        self.assertEqual(tile_state(self.state, 0, 2), "selected_bomb")
        self.assertEqual(tile_state(self.state, 0, 0), "safe")
        self.assertEqual(tile_state(self.state, 1, 1), "bomb")
        self.assertEqual(tile_state(self.state, 1, 0), "selected")

    def test_board_html(self):
        from tools.tiles_render import board_html
        out = board_html(self.state)
        self.assertEqual(out.count('class="row-container"'), 2)
        self.assertEqual(out.count('class="tile'), 6)
        self.assertIn('class="tile bomb selected" title="Selected Bomb Tile">💣', out)
        self.assertIn('class="tile selected" title="Selected Tile"', out)
        self.assertIn('<div class="row-label">1</div>', out)
        self.assertIn('<div class="row-label">2</div>', out)

    def test_board_table(self):
        from rich.console import Console
        from tools.tiles_render import board_table
        console = Console(record=True, width=100)
        console.print(board_table(self.state))
        text = console.export_text()
        self.assertIn("1.4250x", text)
        self.assertIn("2.1375x", text)

    def test_wide_rows_are_summarized(self):
        from rich.console import Console
        from tools.tiles_render import board_html, board_table, is_collapsed
        from config.settings import VerifierConfig
        cap = VerifierConfig.RENDER_MAX_TILES
        self.assertFalse(is_collapsed(cap))
        self.assertTrue(is_collapsed(cap + 1))

        state = build_game_state("v1", [3, 3_000_000], "abc", [None, 7])
        out = board_html(state)
        self.assertLess(len(out), 2000)
        self.assertEqual(out.count('class="tile'), 3)
        self.assertIn('class="row row-summary">3000000 tiles, bomb at 2015503, picked 7<', out)

        console = Console(record=True, width=120)
        console.print(board_table(state))
        self.assertIn("3000000 tiles, bomb at 2015503", console.export_text())

    def test_view_toggle(self):
        from rich.table import Table
        from tools.tiles_render import BoardView
        view = BoardView(self.state)
        self.assertIsInstance(view.render(), Table)
        self.assertEqual(view.toggle(), "Show Visual")
        self.assertIn('"bombTileIndex": 2', view.render())
        self.assertEqual(view.toggle(), "Show Raw JSON")
        # Each view owns its own flag
        self.assertTrue(BoardView(self.state).showing_visual)

    def test_selected_tile_out_of_range(self):
        state = GameState(version="v1", rows=[Row(tiles=2, bombTileIndex=0, multiplier=1.9)], seed="s")
        self.assertIsNone(state.selected_tile(0))
        self.assertIsNone(state.selected_tile(5))


if __name__ == "__main__":
    unittest.main()
