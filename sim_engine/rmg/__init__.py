"""
AARKTILES — Provably Fair RMG Engines

Each game type exposes: parse_params(), verify(), edge math and simulate().

Usage:
    from sim_engine.rmg import get_game_engine
    engine = get_game_engine("aarkTiles")
    result = engine.verify({"rows": "3,3", "seed": "abc", "hash": "0x..."})
"""

from sim_engine.rmg.aark_tiles import AarkTilesEngine

GAME_ENGINES = {
    "aarktiles": AarkTilesEngine,
}

GAME_TYPES = [cls.game_type for cls in GAME_ENGINES.values()]


def get_game_engine(game_type: str):
    """Get the engine for a game type (case-insensitive)."""
    cls = GAME_ENGINES.get(game_type.lower())
    if cls is None:
        raise ValueError(f"Unknown game type: {game_type}. Available: {GAME_TYPES}")
    return cls()
