#!/usr/bin/env python3
"""
Tests for the web verifier and CLI

Validates:
1.  GET /api/verify verifies a published board (match + rebuilt rows)
2.  Mismatch is HTTP 200 with match=false
3.  Missing / malformed input is HTTP 400 with an error message
4.  POST /api/verify accepts a JSON body with array rows
5.  /api/games lists the registered engine
6.  /api/games/<game>/report returns the payout table as strict JSON (null for non-finite values)
7.  / renders the form, and the board + verdict when params are present; very wide rows are summarized
8.  User-supplied values are HTML-escaped
9.  CLI exit codes: 0 match, 1 mismatch, 2 invalid input
"""

import json
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from rich.console import Console

from tools.tiles_cli import EXIT_INVALID, EXIT_MATCH, EXIT_MISMATCH, main as cli_main
from web_app import app

ABC_3_3_HASH = "0x8c52f74ab7159cd26bc9a19d3e54b8b540e59d68e74a630e1f29bf22912c7c4a"
PADDED_VERSION_HASH = "0x72050fea54dabd136904d4ce72c0607f7bc632c52553d08bd65828990f24c70d"
BLANK_SEED_HASH = "0xf435917810b9c2eb9f15c7b339f5cae824f78270d649533ca57912f2b3f8378d"


def _client():
    app.config["TESTING"] = True
    return app.test_client()


def _console():
    return Console(record=True, width=200)


# ============================================================
# API
# ============================================================

def test_api_verify_match():
    resp = _client().get(f"/api/verify?version=v1&rows=3,3&seed=abc&hash={ABC_3_3_HASH}")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["match"] is True
    assert data["computed_hash"] == ABC_3_3_HASH
    rows = data["game_state"]["rows"]
    assert [r["bombTileIndex"] for r in rows] == [2, 1]
    assert [r["tiles"] for r in rows] == [3, 3]


def test_api_verify_mismatch_is_200():
    resp = _client().get(f"/api/verify?rows=3,3&seed=abd&hash={ABC_3_3_HASH}")
    assert resp.status_code == 200
    assert resp.get_json()["match"] is False


def test_api_verify_missing_params():
    resp = _client().get("/api/verify?rows=3,3")
    assert resp.status_code == 400
    error = resp.get_json()["error"]
    assert "seed" in error and "hash" in error


def test_api_verify_bad_rows():
    resp = _client().get(f"/api/verify?rows=3,x&seed=abc&hash={ABC_3_3_HASH}")
    assert resp.status_code == 400
    assert "tile counts" in resp.get_json()["error"]


def test_api_verify_unknown_game():
    resp = _client().get(f"/api/verify?game=roulette&rows=3&seed=abc&hash={ABC_3_3_HASH}")
    assert resp.status_code == 400


def test_api_verify_post_json():
    resp = _client().post("/api/verify", json={
        "version": "v1", "rows": [3, 3], "seed": "abc",
        "hash": ABC_3_3_HASH.upper(), "selectedTiles": [1, 1],
    })
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["match"] is True
    assert data["game_state"]["selectedTiles"] == [1, 1]


def test_api_verify_version_hashed_verbatim():
    resp = _client().get(f"/api/verify?version=%20v1%20&rows=3,3&seed=abc&hash={PADDED_VERSION_HASH}")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["match"] is True
    assert data["game_state"]["version"] == " v1 "


def test_api_verify_whitespace_seed():
    resp = _client().get(f"/api/verify?rows=3,3&seed=%20%20%20&hash={BLANK_SEED_HASH}")
    assert resp.status_code == 200
    assert resp.get_json()["match"] is True
    resp = _client().get("/api/verify?rows=3,3&seed=abc&hash=%20")
    assert resp.status_code == 200
    assert resp.get_json()["match"] is False


def test_api_verify_truncated_selection_escape():
    resp = _client().get(f"/api/verify?rows=3,3&seed=abc&hash={ABC_3_3_HASH}&selectedTiles=1,%25")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["match"] is True
    assert data["game_state"]["selectedTiles"] == []


def test_api_games():
    resp = _client().get("/api/games")
    assert resp.status_code == 200
    games = resp.get_json()["games"]
    assert games[0]["game_type"] == "aarkTiles"
    assert games[0]["required_params"] == ["version", "rows", "seed", "hash"]


def test_api_report():
    resp = _client().get("/api/games/aarkTiles/report?rows=3,3")
    assert resp.status_code == 200
    rows = resp.get_json()["rows"]
    assert len(rows) == 2
    assert abs(rows[1]["effective_rtp"] - 0.95) < 1e-9


def test_api_report_with_simulation():
    resp = _client().get("/api/games/aarkTiles/report?rows=2,2&simulate=1&rounds=2000")
    assert resp.status_code == 200
    assert resp.get_json()["simulation"]["rounds"] == 2000


def test_api_report_bad_rows():
    assert _client().get("/api/games/aarkTiles/report").status_code == 400


def test_api_report_one_tile_row_is_valid_json():
    resp = _client().get("/api/games/aarkTiles/report?rows=1")
    assert resp.status_code == 200
    body = resp.get_data(as_text=True)
    assert "NaN" not in body and "Infinity" not in body
    row = json.loads(body)["rows"][0]
    assert row["fair_multiplier"] is None
    assert row["multiplier"] is None
    assert row["effective_rtp"] is None
    assert row["survival_probability"] == 0


def test_api_report_too_many_rows():
    resp = _client().get("/api/games/aarkTiles/report?rows=" + ",".join(["2"] * 1001))
    assert resp.status_code == 400
    assert "Too many rows" in resp.get_json()["error"]


def test_api_unknown_route_json_404():
    resp = _client().get("/api/nothing-here")
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "Not found"


# ============================================================
# Page
# ============================================================

def test_index_form_only():
    resp = _client().get("/")
    assert resp.status_code == 200
    body = resp.get_data(as_text=True)
    assert 'name="rows"' in body and 'name="seed"' in body and 'name="hash"' in body
    assert 'type="hidden" id="version" name="version" value="v1"' in body
    assert "toggle-view" not in body.split("<script>")[0]


def test_index_verifies_from_query():
    resp = _client().get(f"/?rows=3,3&seed=abc&hash={ABC_3_3_HASH}&selectedTiles=2,0")
    body = resp.get_data(as_text=True)
    assert "Hash verified" in body
    assert body.count('class="row-container"') == 2
    assert "Selected Bomb Tile" in body
    assert 'id="rows-config"' in body


def test_index_mismatch_and_error():
    body = _client().get(f"/?rows=3,3&seed=zzz&hash={ABC_3_3_HASH}").get_data(as_text=True)
    assert "Hash mismatch" in body
    body = _client().get("/?rows=3,3").get_data(as_text=True)
    assert "Missing required parameters" in body


def test_index_escapes_input():
    body = _client().get("/?rows=2&seed=<script>x</script>&hash=0x00").get_data(as_text=True)
    assert "<script>x</script>" not in body
    assert "&lt;script&gt;" in body


def test_index_wide_row_is_summarized():
    resp = _client().get("/?rows=3000000&seed=abc&hash=0x00")
    assert resp.status_code == 200
    body = resp.get_data(as_text=True)
    assert len(body) < 100_000
    assert "3000000 tiles, bomb at" in body
    assert 'class="tile' not in body


# ============================================================
# CLI
# ============================================================

def test_cli_verify_match():
    console = _console()
    code = cli_main(["verify", "--rows", "3,3", "--seed", "abc", "--hash", ABC_3_3_HASH], console)
    assert code == EXIT_MATCH
    assert "Commitment verified" in console.export_text()


def test_cli_verify_mismatch():
    code = cli_main(["verify", "--rows", "3,3", "--seed", "abc", "--hash", "0xdeadbeef"], _console())
    assert code == EXIT_MISMATCH


def test_cli_verify_json():
    console = _console()
    code = cli_main(["verify", "--rows", "3,3", "--seed", "abc", "--hash", ABC_3_3_HASH,
                     "--selected", "2,0", "--json"], console)
    assert code == EXIT_MATCH
    data = json.loads(console.export_text())
    assert data["match"] is True
    assert data["game_state"]["selectedTiles"] == [2, 0]


def test_cli_verify_raw_view():
    console = _console()
    code = cli_main(["verify", "--rows", "3,3", "--seed", "abc", "--hash", ABC_3_3_HASH, "--raw"], console)
    assert code == EXIT_MATCH
    text = console.export_text()
    assert '"bombTileIndex": 2' in text
    assert "Commitment verified" in text


def test_cli_invalid_input():
    console = _console()
    code = cli_main(["verify", "--rows", "3,oops", "--seed", "abc", "--hash", ABC_3_3_HASH], console)
    assert code == EXIT_INVALID
    assert "Invalid tile counts" in console.export_text()


def test_cli_hash():
    console = _console()
    assert cli_main(["hash", "--rows", "3,3", "--seed", "abc"], console) == EXIT_MATCH
    assert ABC_3_3_HASH in console.export_text()


def test_cli_report():
    console = _console()
    assert cli_main(["report", "--rows", "3,3", "--simulate", "--rounds", "1000"], console) == EXIT_MATCH
    text = console.export_text()
    assert "95.00%" in text
    assert "RTP:" in text


if __name__ == "__main__":
    tests = [fn for name, fn in sorted(globals().items()) if name.startswith("test_") and callable(fn)]

    print(f"\n{'='*60}")
    print(f"Web + CLI Tests — {len(tests)} tests")
    print(f"{'='*60}\n")

    passed = 0
    failed = 0
    for test in tests:
        try:
            test()
            passed += 1
        except Exception as e:
            print(f"❌ {test.__name__}: {e}")
            failed += 1

    print(f"{'='*60}")
    print(f"Results: {passed} passed, {failed} failed, {passed + failed} total")
    print(f"{'='*60}")

    sys.exit(0 if failed == 0 else 1)
