"""
AARKTILES — Provably Fair Game Verifier (web)

Players paste (or link with query params) the rows, seed and published hash
of a finished game; the page rebuilds the board and checks the commitment.
"""
import html, json, logging, math, os

from config.settings import VerifierConfig

# ── Structured logging ──
VerifierConfig.configure_logging()
logger = logging.getLogger("aarktiles.web")

from flask import Flask, request, jsonify
from werkzeug.middleware.proxy_fix import ProxyFix

from sim_engine.rmg import GAME_ENGINES, GAME_TYPES, get_game_engine
from tools.tiles_fair import InvalidInputError, parse_tile_counts
from tools.tiles_render import BoardView, board_html, raw_json

app = Flask(__name__)
app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)
app.config["MAX_CONTENT_LENGTH"] = 1 * 1024 * 1024  # verification payloads are tiny

# XSS protection — escape user-supplied content before rendering in HTML
_esc = html.escape

_JSON = {"Content-Type": "application/json"}

PAGE_CSS = """
body{font-family:Inter,system-ui,sans-serif;background:#030014;color:#e2e8f0;margin:0;padding:32px}
main{max-width:760px;margin:0 auto}
label{display:block;margin:12px 0;font-size:13px;color:#94a3b8}
input,textarea{display:block;width:100%;margin-top:4px;padding:8px;background:#0a0020;color:#e2e8f0;border:1px solid #1e293b;border-radius:6px}
button{margin-top:12px;padding:8px 16px;background:#6366f1;color:#fff;border:0;border-radius:6px;cursor:pointer}
.verdict{padding:12px 16px;border-radius:8px;margin:20px 0;font-weight:600}
.verdict.ok{background:#052e16;color:#22c55e}.verdict.bad{background:#450a0a;color:#ef4444}
.error{background:#450a0a;color:#fca5a5;padding:12px 16px;border-radius:8px;margin:20px 0}
.hashes{font-family:monospace;font-size:12px;color:#64748b;word-break:break-all}
#visual-view{display:flex;flex-direction:column-reverse;gap:6px;margin-top:16px}
.row-container{display:flex;align-items:center;gap:10px}
.row-label{width:24px;text-align:right;color:#64748b;font-size:12px}
.row{display:flex;gap:6px}
.tile{width:34px;height:34px;border-radius:6px;background:#1e293b;display:grid;place-items:center}
.tile.bomb{background:#7f1d1d}.tile.selected{outline:2px solid #22c55e}
.row-summary{font-family:monospace;font-size:12px;color:#94a3b8}
#rows-config{white-space:pre;font-family:monospace;font-size:12px;background:#0a0020;padding:12px;border-radius:8px}
"""

# View state lives inside the closure, one flag per page load
TOGGLE_JS = """
(function(){
  const btn=document.getElementById("toggle-view"),vis=document.getElementById("visual-view"),raw=document.getElementById("rows-config");
  if(!btn||!vis||!raw)return;
  let showingVisual=true;
  btn.onclick=function(){
    showingVisual=!showingVisual;
    vis.style.display=showingVisual?"":"none";
    raw.style.display=showingVisual?"none":"";
    btn.textContent=showingVisual?"Show Raw JSON":"Show Visual";
  };
})();
"""


def layout(content, title="Aark-tile Verifier"):
    return f'''<!DOCTYPE html><html lang="en"><head><meta charset="UTF-8"><meta name="viewport" content="width=device-width,initial-scale=1"><title>{_esc(title)}</title><style>{PAGE_CSS}</style></head><body>
<main><h1>{_esc(title)}</h1>{content}</main><script>{TOGGLE_JS}</script></body></html>'''


def form_html(engine, values: dict) -> str:
    fields = ""
    for f in engine.form_fields():
        name = f["name"]
        value = _esc(str(values.get(name) or f.get("value") or ""))
        if f["type"] == "hidden":
            fields += f'<input type="hidden" id="{name}" name="{name}" value="{value}" />'
        elif f["type"] == "textarea":
            fields += (f'<label>{_esc(f["label"])}<textarea id="{name}" name="{name}" rows="3" '
                       f'required>{value}</textarea></label>')
        else:
            fields += (f'<label>{_esc(f["label"])}<input type="text" id="{name}" name="{name}" '
                       f'value="{value}" required /></label>')
    return f'<form method="get" action="/">{fields}<button type="submit">Verify</button></form>'


def result_html(result) -> str:
    ok = result.match
    view = BoardView(result.game_state)
    verdict = "✅ Hash verified: this board matches the published commitment" if ok \
        else "❌ Hash mismatch: this board does not match the published commitment"
    return (
        f'<div class="verdict {"ok" if ok else "bad"}">{verdict}</div>'
        f'<div class="hashes">Computed: {_esc(result.computed_hash)}<br>'
        f'Expected: {_esc(result.expected_hash)}</div>'
        f'<button id="toggle-view" type="button">{view.button_label}</button>'
        f'<div id="visual-view">{board_html(result.game_state)}</div>'
        f'<div id="rows-config" style="display:none">{_esc(raw_json(result.game_state))}</div>'
    )


def _json_safe(value):
    """Non-finite floats become null; JSON has no inf or NaN."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


def _param_text(value) -> str:
    # JSON bodies may send rows / selectedTiles as arrays
    if isinstance(value, list):
        return ",".join(str(v) for v in value)
    return str(value)


def _request_params() -> dict:
    """Query string, then form fields, then a JSON body; later sources win."""
    params = dict(request.args.items())
    params.update(request.form.items())
    body = request.get_json(silent=True)
    if isinstance(body, dict):
        params.update({k: _param_text(v) for k, v in body.items() if v is not None})
    return params


# ─── PAGES ───
@app.route("/")
def index():
    """Verifier form; runs the check when rows, seed and hash are supplied."""
    try:
        engine = get_game_engine(request.args.get("game", GAME_TYPES[0]))
    except ValueError as e:
        return layout(f'<div class="error">{_esc(str(e))}</div>'), 400
    params = _request_params()
    body = form_html(engine, params)

    if any(params.get(p) for p in engine.required_params if p != "version"):
        try:
            body += result_html(engine.verify(params))
        except InvalidInputError as e:
            body += f'<div class="error">{_esc(str(e))}</div>'
    return layout(body, title=f"{engine.display_name} Verifier")


# ─── API ───
@app.route("/api/verify", methods=["GET", "POST"])
def api_verify():
    """API: Verify a finished game.

    Params (query string or JSON body):
        game          — game type (default: aarkTiles)
        version       — board version tag (default: v1)
        rows          — comma-separated tile counts
        seed          — revealed seed
        hash          — published commitment (0x prefix optional)
        selectedTiles — optional comma-separated picks, display only
    Returns:
        match, computed_hash, expected_hash, game_state
    """
    params = _request_params()
    try:
        engine = get_game_engine(params.get("game", GAME_TYPES[0]))
        result = engine.verify(params)
        return json.dumps(result.to_dict()), 200, _JSON
    except ValueError as e:
        logger.info(f"Rejected verification request: {e}")
        return json.dumps({"error": str(e)}), 400, _JSON


@app.route("/api/games")
def api_games():
    """API: Registered game engines and their parameters."""
    return json.dumps({
        "games": [cls().get_metadata() for cls in GAME_ENGINES.values()],
    }), 200, _JSON


@app.route("/api/games/<game_id>/report")
def api_game_report(game_id):
    """API: Per-row payout / house edge report.

    Query params:
        rows      — comma-separated tile counts
        simulate  — include Monte Carlo check (0/1, default: 0)
        rounds    — Monte Carlo rounds (default: TILES_SIM_ROUNDS, max: 1000000)
    """
    try:
        engine = get_game_engine(game_id)
        tile_counts = parse_tile_counts(request.args.get("rows", ""))
        if len(tile_counts) > VerifierConfig.MAX_ROWS:
            raise InvalidInputError(
                f"Too many rows: {len(tile_counts)} (max {VerifierConfig.MAX_ROWS})")
        report ={"game": engine.game_type, "rows": engine.edge_report(tile_counts)}
        if request.args.get("simulate", "0") == "1":
            rounds = min(int(request.args.get("rounds", VerifierConfig.SIM_ROUNDS)), 1_000_000)
            config = engine.generate_config(tile_counts=tile_counts)
            report["simulation"] = engine.simulate(config, rounds=rounds).to_dict()
        return json.dumps(_json_safe(report), allow_nan=False), 200, _JSON
    except ValueError as e:
        return json.dumps({"error": str(e)}), 400, _JSON


@app.errorhandler(404)
def error_404(e):
    if request.path.startswith("/api/"):
        return jsonify({"error": "Not found"}), 404
    return layout('<div class="error">Page not found. <a href="/">Back to the verifier</a></div>'), 404


@app.errorhandler(500)
def error_500(e):
    logger.error(f"500 error: {e}", exc_info=True)
    if request.path.startswith("/api/"):
        return jsonify({"error": "Internal server error"}), 500
    return layout('<div class="error">Something went wrong. Try again.</div>'), 500


if __name__ == "__main__":
    logger.info(f"AARKTILES verifier — http://{VerifierConfig.WEB_HOST}:{VerifierConfig.WEB_PORT}")
    app.run(debug=os.getenv("FLASK_DEBUG", "false").lower() == "true",
            host=VerifierConfig.WEB_HOST, port=VerifierConfig.WEB_PORT)
