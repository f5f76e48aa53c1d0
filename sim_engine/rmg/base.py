"""
AARKTILES — Base RMG Engine

Abstract base for provably fair mini-game engines. An engine knows how to
parse its verification parameters, rebuild the board from a seed, hash it,
and run a Monte Carlo check of its payout table.
"""

import logging
import math
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Mapping

from pydantic import ValidationError

from config.settings import VerifierConfig
from config.tiles_schema import GameParams, GameState, VerificationResult
from tools.tiles_fair import InvalidInputError, hashes_match, normalize_hash

logger = logging.getLogger("aarktiles.rmg")


@dataclass
class SimResult:
    """Simulation results for an RMG mini-game."""
    game_type: str
    rounds: int
    house_edge_theoretical: float
    house_edge_measured: float
    avg_multiplier: float
    max_multiplier_hit: float
    hit_rate: float  # % of rounds that returned > 0
    total_wagered: float
    total_returned: float
    rtp: float  # 1 - house_edge_measured
    confidence_95: tuple = (0.0, 0.0)
    distribution: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "game_type": self.game_type,
            "rounds": self.rounds,
            "house_edge_theoretical": round(self.house_edge_theoretical, 6),
            "house_edge_measured": round(self.house_edge_measured, 6),
            "rtp": round(self.rtp, 4),
            "avg_multiplier": round(self.avg_multiplier, 4),
            "max_multiplier_hit": round(self.max_multiplier_hit, 2),
            "hit_rate": round(self.hit_rate, 4),
            "total_wagered": round(self.total_wagered, 2),
            "total_returned": round(self.total_returned, 2),
            "confidence_95": [round(x, 6) for x in self.confidence_95],
            "distribution": self.distribution,
        }


def _bucket(mult: float) -> str:
    if mult == 0:
        return "0x"
    if mult < 2:
        return "1-2x"
    if mult < 5:
        return "2-5x"
    if mult < 10:
        return "5-10x"
    if mult < 50:
        return "10-50x"
    if mult < 100:
        return "50-100x"
    return "100x+"


class BaseRMGEngine(ABC):
    """Abstract base for all provably fair RMG mini-games."""

    game_type: str = "base"
    display_name: str = "Base Game"
    required_params: tuple = ()
    optional_params: tuple = ()
    house_edge: float = 0.0

    # ── Verification ──────────────────────────────────────────

    @abstractmethod
    def parse_params(self, params: Mapping[str, str]) -> GameParams:
        """Turn raw string parameters into validated GameParams."""
        ...

    @abstractmethod
    def reconstruct_game_state(self, game_params: GameParams) -> GameState:
        ...

    @abstractmethod
    async def reconstruct_game_state_async(self, game_params: GameParams) -> GameState:
        ...

    @abstractmethod
    def generate_game_hash(self, game_state: GameState) -> str:
        ...

    def missing_params(self, params: Mapping[str, str]) -> list:
        """Required parameters that are absent or empty. Whitespace counts as a value."""
        return [p for p in self.required_params if not params.get(p)]

    def build_params(self, **values) -> GameParams:
        """GameParams from already-parsed values; schema errors become InvalidInputError."""
        try:
            return GameParams(**values)
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise InvalidInputError(f"Invalid {self.game_type} parameters: {fields}") from e

    def _result(self, game_params: GameParams, state: GameState, computed: str) -> VerificationResult:
        match = hashes_match(computed, game_params.expected_hash)
        if match:
            logger.info(f"{self.game_type}: commitment verified ({len(state.rows)} rows)")
        else:
            logger.info(f"{self.game_type}: commitment mismatch computed={computed}")
        return VerificationResult(
            game=self.game_type,
            match=match,
            computed_hash=computed,
            expected_hash=normalize_hash(game_params.expected_hash),
            game_state=state,
        )

    def verify(self, params: Mapping[str, str]) -> VerificationResult:
        """Parse → reconstruct → hash → compare. A mismatch is a normal result."""
        game_params = self.parse_params(params)
        state = self.reconstruct_game_state(game_params)
        return self._result(game_params, state, self.generate_game_hash(state))

    async def verify_async(self, params: Mapping[str, str]) -> VerificationResult:
        game_params = self.parse_params(params)
        state = await self.reconstruct_game_state_async(game_params)
        return self._result(game_params, state, self.generate_game_hash(state))

    # ── Math model ────────────────────────────────────────────

    @abstractmethod
    def generate_config(self, **kwargs) -> dict:
        """Generate a game configuration dict from parameters."""
        ...

    @abstractmethod
    def simulate_round(self, config: dict, rng) -> float:
        """Simulate one round. Returns multiplier (0 = loss)."""
        ...

    def simulate(self, config: dict, rounds: int = None, seed: int = None) -> SimResult:
        """Run a Monte Carlo simulation."""
        rounds = rounds or VerifierConfig.SIM_ROUNDS
        rng = random.Random(VerifierConfig.SIM_SEED if seed is None else seed)

        total_returned = 0.0
        total_sq = 0.0
        wins = 0
        max_mult = 0.0
        buckets = {}

        for _ in range(rounds):
            mult = self.simulate_round(config, rng)
            total_returned += mult
            total_sq += mult * mult
            if mult > 0:
                wins += 1
            if mult > max_mult:
                max_mult = mult
            b = _bucket(mult)
            buckets[b] = buckets.get(b, 0) + 1

        total_wagered = float(rounds)
        rtp = total_returned / total_wagered if total_wagered > 0 else 0
        he_measured = 1 - rtp
        avg_mult = total_returned / rounds

        # 95% confidence interval for house edge
        variance = max(total_sq / rounds - avg_mult ** 2, 0.0)
        std_err = math.sqrt(variance / rounds)
        ci = (he_measured - 1.96 * std_err, he_measured + 1.96 * std_err)

        return SimResult(
            game_type=self.game_type,
            rounds=rounds,
            house_edge_theoretical=self.house_edge,
            house_edge_measured=he_measured,
            avg_multiplier=avg_mult,
            max_multiplier_hit=max_mult,
            hit_rate=wins / rounds,
            total_wagered=total_wagered,
            total_returned=total_returned,
            rtp=rtp,
            confidence_95=ci,
            distribution={k: round(v / rounds, 4) for k, v in sorted(buckets.items())},
        )

    def get_metadata(self) -> dict:
        """Return game type metadata for the UI/API."""
        return {
            "game_type": self.game_type,
            "display_name": self.display_name,
            "required_params": list(self.required_params),
            "optional_params": list(self.optional_params),
            "house_edge": self.house_edge,
        }
