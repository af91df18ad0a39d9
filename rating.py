"""ELO rating math shared by match progression and the rankings views."""

from dataclasses import dataclass
import math

DEFAULT_K_FACTOR = 32
STARTING_ELO = 1000.0
MIN_ELO = 0.0

RANK_TIERS = (
    (2400, 'Grandmaster'),
    (2200, 'Master'),
    (2000, 'Diamond'),
    (1800, 'Platinum'),
    (1600, 'Gold'),
    (1400, 'Silver'),
    (1200, 'Bronze'),
    (0, 'Iron'),
)


@dataclass(frozen=True)
class EloOutcome:
    winner_before: float
    loser_before: float
    winner_after: float
    loser_after: float
    expected_winner: float
    delta: float

    @property
    def winner_change(self) -> float:
        return self.winner_after - self.winner_before

    @property
    def loser_change(self) -> float:
        return self.loser_after - self.loser_before


def expected_score(rating: float, opponent_rating: float) -> float:
    """Probability that ``rating`` beats ``opponent_rating`` (0.0 to 1.0)."""
    return 1 / (1 + math.pow(10, (opponent_rating - rating) / 400))


def calculate_elo_change(winner_elo: float, loser_elo: float, k_factor: float = DEFAULT_K_FACTOR) -> float:
    """Points the winner takes from the loser, always within ``[0, k_factor]``."""
    if k_factor < 0:
        raise ValueError('K-factor must not be negative')
    return k_factor * (1 - expected_score(winner_elo, loser_elo))


def resolve_match(winner_elo: float, loser_elo: float, k_factor: float = DEFAULT_K_FACTOR) -> EloOutcome:
    delta = calculate_elo_change(winner_elo, loser_elo, k_factor)
    return EloOutcome(
        winner_before=winner_elo,
        loser_before=loser_elo,
        winner_after=winner_elo + delta,
        loser_after=max(MIN_ELO, loser_elo - delta),
        expected_winner=expected_score(winner_elo, loser_elo),
        delta=delta,
    )


def win_probability(rating_a: float, rating_b: float) -> float:
    """Win probability for A as a percentage."""
    return expected_score(rating_a, rating_b) * 100


def rank_tier(elo: float) -> str:
    for threshold, name in RANK_TIERS:
        if elo >= threshold:
            return name
    return RANK_TIERS[-1][1]


def format_elo_change(change: float) -> str:
    rounded = round(change, 1)
    if rounded > 0:
        return f'+{rounded}'
    if rounded < 0:
        return str(rounded)
    return '±0'
