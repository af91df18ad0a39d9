"""Bracket planning.

A plan is an explicit graph of :class:`MatchNode` objects. Each node knows
where its winner goes (``next_match``/``next_slot``) and, in double
elimination, where its loser drops (``loser_next_match``/``loser_next_slot``).
Nothing here touches the database; ``Tournament.generate_bracket`` turns a
plan into ``Match`` rows.
"""

from dataclasses import dataclass, field
from enum import Enum
import math
from typing import Optional, Sequence

from errors import InsufficientParticipants

MIN_PARTICIPANTS = 2
MAX_PARTICIPANTS = 256
RESET_STAGE = 'Grand Final Reset'


class BracketType(str, Enum):
    SINGLE_ELIMINATION = 'single_elimination'
    DOUBLE_ELIMINATION = 'double_elimination'
    ROUND_ROBIN = 'round_robin'


class BracketSide(str, Enum):
    WINNERS = 'winners'
    LOSERS = 'losers'
    GRAND_FINAL = 'grand_final'
    ROUND_ROBIN = 'round_robin'
    PLAYOFF = 'playoff'


@dataclass(eq=False)
class MatchNode:
    side: BracketSide
    round_number: int
    match_number: int
    stage: str
    participant1_id: Optional[int] = None
    participant2_id: Optional[int] = None
    is_bye: bool = False
    next_match: Optional['MatchNode'] = None
    next_slot: Optional[int] = None
    loser_next_match: Optional['MatchNode'] = None
    loser_next_slot: Optional[int] = None

    @property
    def key(self) -> str:
        return f'{self.side.value}:{self.round_number}:{self.match_number}'

    @property
    def bye_winner(self) -> Optional[int]:
        if not self.is_bye:
            return None
        return self.participant1_id if self.participant1_id is not None else self.participant2_id

    def __repr__(self):  # pragma: no cover - debug helper
        return f'<MatchNode {self.key} {self.participant1_id} v {self.participant2_id}>'


@dataclass
class BracketPlan:
    bracket_type: BracketType
    participant_count: int
    bracket_size: int
    nodes: list[MatchNode] = field(default_factory=list)

    def side(self, side: BracketSide) -> list[MatchNode]:
        return [node for node in self.nodes if node.side == side]

    def round(self, side: BracketSide, round_number: int) -> list[MatchNode]:
        matches = [node for node in self.side(side) if node.round_number == round_number]
        return sorted(matches, key=lambda node: node.match_number)

    def round_count(self, side: BracketSide) -> int:
        return max((node.round_number for node in self.side(side)), default=0)

    @property
    def byes(self) -> list[MatchNode]:
        return [node for node in self.nodes if node.is_bye]

    @property
    def decisive_count(self) -> int:
        return len(self.nodes) - len(self.byes)


def bracket_size(participant_count: int) -> int:
    """Smallest power of two that holds every participant."""
    if participant_count < MIN_PARTICIPANTS:
        raise InsufficientParticipants()
    return 1 << (participant_count - 1).bit_length()


def seed_order(size: int) -> list[int]:
    """Standard bracket order, e.g. 8 -> [1, 8, 4, 5, 2, 7, 3, 6].

    Consecutive pairs are first-round matches, so seed ``s`` meets seed
    ``size + 1 - s`` and the top seeds sit in opposite halves.
    """
    order = [1]
    while len(order) < size:
        total = len(order) * 2 + 1
        order = [seed for current in order for seed in (current, total - current)]
    return order


def stage_name_for_round(total_rounds: int, round_index: int, prefix: str = '') -> str:
    mapping = {
        6: ['Round of 64', 'Round of 32', 'Round of 16', 'Quarterfinal', 'Semifinal', 'Final'],
        5: ['Round of 32', 'Round of 16', 'Quarterfinal', 'Semifinal', 'Final'],
        4: ['Round of 16', 'Quarterfinal', 'Semifinal', 'Final'],
        3: ['Quarterfinal', 'Semifinal', 'Final'],
        2: ['Semifinal', 'Final'],
        1: ['Final'],
    }
    names = mapping.get(total_rounds)
    if not names:
        names = [f'Round {i + 1}' for i in range(total_rounds)]
    try:
        name = names[round_index - 1]
    except IndexError:
        name = f'Round {round_index}'
    return f'{prefix} {name}'.strip()


def losers_stage_name(round_index: int, total_rounds: int) -> str:
    if round_index == total_rounds:
        return 'Losers Final'
    return f'Losers Round {round_index}'


def _check_participants(participants: Sequence[int]) -> list[int]:
    participants = list(participants)
    if len(participants) < MIN_PARTICIPANTS:
        raise InsufficientParticipants()
    if len(participants) > MAX_PARTICIPANTS:
        raise ValueError(f'Brackets support at most {MAX_PARTICIPANTS} participants')
    if len(set(participants)) != len(participants):
        raise ValueError('Each participant can only occupy one seed')
    return participants


def _elimination_rounds(
    participants: list[int],
    side: BracketSide,
    stage_prefix: str = '',
    round_offset: int = 0,
) -> list[list[MatchNode]]:
    size = bracket_size(len(participants))
    total_rounds = int(math.log2(size))
    slots = [participants[seed - 1] if seed <= len(participants) else None for seed in seed_order(size)]

    rounds: list[list[MatchNode]] = []
    for round_index in range(1, total_rounds + 1):
        count = size >> round_index
        stage = stage_name_for_round(total_rounds, round_index, stage_prefix)
        rounds.append(
            [
                MatchNode(
                    side=side,
                    round_number=round_index + round_offset,
                    match_number=idx + 1,
                    stage=f'{stage} {idx + 1}' if count > 1 else stage,
                )
                for idx in range(count)
            ]
        )

    for idx, node in enumerate(rounds[0]):
        node.participant1_id = slots[2 * idx]
        node.participant2_id = slots[2 * idx + 1]
        node.is_bye = node.participant1_id is None or node.participant2_id is None

    # wire winners to next round slots
    for round_idx in range(len(rounds) - 1):
        next_round = rounds[round_idx + 1]
        for idx, node in enumerate(rounds[round_idx]):
            node.next_match = next_round[idx // 2]
            node.next_slot = 1 if idx % 2 == 0 else 2

    return rounds


def single_elimination(
    participants: Sequence[int],
    side: BracketSide = BracketSide.WINNERS,
    round_offset: int = 0,
) -> BracketPlan:
    participants = _check_participants(participants)
    prefix = 'Playoff' if side == BracketSide.PLAYOFF else ''
    rounds = _elimination_rounds(participants, side, prefix, round_offset)
    return BracketPlan(
        bracket_type=BracketType.SINGLE_ELIMINATION,
        participant_count=len(participants),
        bracket_size=bracket_size(len(participants)),
        nodes=[node for round_nodes in rounds for node in round_nodes],
    )


def double_elimination(participants: Sequence[int]) -> BracketPlan:
    participants = _check_participants(participants)
    winners = _elimination_rounds(participants, BracketSide.WINNERS, 'Winners')
    size = bracket_size(len(participants))

    losers: list[list[MatchNode]] = []
    if len(winners) > 1:
        first = [_losers_node(1, idx) for idx in range(size // 4)]
        for idx, node in enumerate(winners[0]):
            node.loser_next_match = first[idx // 2]
            node.loser_next_slot = 1 if idx % 2 == 0 else 2
        losers.append(first)

        for winners_round in range(1, len(winners)):
            survivors = losers[-1]
            major = [_losers_node(len(losers) + 1, idx) for idx in range(len(survivors))]
            for idx, node in enumerate(survivors):
                node.next_match = major[idx]
                node.next_slot = 1
            # alternate the drop order so early opponents do not meet again straight away
            dropping = winners[winners_round]
            if winners_round % 2 == 1:
                dropping = list(reversed(dropping))
            for idx, node in enumerate(dropping):
                node.loser_next_match = major[idx]
                node.loser_next_slot = 2
            losers.append(major)

            if len(major) > 1:
                minor = [_losers_node(len(losers) + 1, idx) for idx in range(len(major) // 2)]
                for idx, node in enumerate(major):
                    node.next_match = minor[idx // 2]
                    node.next_slot = 1 if idx % 2 == 0 else 2
                losers.append(minor)

    grand_final = MatchNode(
        side=BracketSide.GRAND_FINAL,
        round_number=1,
        match_number=1,
        stage='Grand Final',
    )
    winners[-1][0].next_match = grand_final
    winners[-1][0].next_slot = 1
    if losers:
        losers[-1][0].next_match = grand_final
        losers[-1][0].next_slot = 2
    else:
        winners[0][0].loser_next_match = grand_final
        winners[0][0].loser_next_slot = 2

    winner_nodes = [node for round_nodes in winners for node in round_nodes]
    loser_nodes = _prune_losers_bracket(winner_nodes, losers)
    return BracketPlan(
        bracket_type=BracketType.DOUBLE_ELIMINATION,
        participant_count=len(participants),
        bracket_size=size,
        nodes=winner_nodes + loser_nodes + [grand_final],
    )


def _losers_node(round_number: int, idx: int) -> MatchNode:
    return MatchNode(
        side=BracketSide.LOSERS,
        round_number=round_number,
        match_number=idx + 1,
        stage='',
    )


def _prune_losers_bracket(winner_nodes: list[MatchNode], losers: list[list[MatchNode]]) -> list[MatchNode]:
    """Drop losers-bracket matches that can never be contested.

    Bye matches produce no loser. A losers match left with a single feed is
    removed and its feeder is rewired straight to where the match would have
    sent its winner; one with no feed at all is removed outright.
    """
    for node in winner_nodes:
        if node.is_bye:
            node.loser_next_match = None
            node.loser_next_slot = None

    kept: list[MatchNode] = []
    for round_nodes in losers:
        for node in round_nodes:
            feeders = [
                source
                for source in winner_nodes + kept
                if source.next_match is node or source.loser_next_match is node
            ]
            if len(feeders) == 2:
                kept.append(node)
                continue
            for source in feeders:
                if source.next_match is node:
                    source.next_match = node.next_match
                    source.next_slot = node.next_slot
                else:
                    source.loser_next_match = node.next_match
                    source.loser_next_slot = node.next_slot

    round_numbers = sorted({node.round_number for node in kept})
    renumber = {old: new for new, old in enumerate(round_numbers, start=1)}
    total_rounds = len(round_numbers)
    for old_round in round_numbers:
        round_nodes = sorted(
            (node for node in kept if node.round_number == old_round),
            key=lambda node: node.match_number,
        )
        for idx, node in enumerate(round_nodes, start=1):
            node.round_number = renumber[old_round]
            node.match_number = idx
            stage = losers_stage_name(node.round_number, total_rounds)
            node.stage = f'{stage} {idx}' if len(round_nodes) > 1 else stage
    return sorted(kept, key=lambda node: (node.round_number, node.match_number))


def round_robin(participants: Sequence[int]) -> BracketPlan:
    """Circle-method schedule: everybody meets everybody once, one match per round each."""
    participants = _check_participants(participants)
    players: list[Optional[int]] = list(participants)
    if len(players) % 2:
        players.append(None)

    count = len(players)
    fixed, rotating = players[0], players[1:]
    nodes: list[MatchNode] = []
    for round_index in range(1, count):
        circle = [fixed] + rotating
        match_number = 0
        for idx in range(count // 2):
            first, second = circle[idx], circle[count - 1 - idx]
            if first is None or second is None:
                continue
            if idx == 0 and round_index % 2 == 0:
                first, second = second, first
            match_number += 1
            nodes.append(
                MatchNode(
                    side=BracketSide.ROUND_ROBIN,
                    round_number=round_index,
                    match_number=match_number,
                    stage=f'Round {round_index}',
                    participant1_id=first,
                    participant2_id=second,
                )
            )
        rotating = [rotating[-1]] + rotating[:-1]

    return BracketPlan(
        bracket_type=BracketType.ROUND_ROBIN,
        participant_count=len(participants),
        bracket_size=len(participants),
        nodes=nodes,
    )


def generate_plan(bracket_type, participants: Sequence[int]) -> BracketPlan:
    kind = BracketType(bracket_type)
    if kind is BracketType.SINGLE_ELIMINATION:
        return single_elimination(participants)
    if kind is BracketType.DOUBLE_ELIMINATION:
        return double_elimination(participants)
    return round_robin(participants)
