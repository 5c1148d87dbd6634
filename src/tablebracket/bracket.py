"""
Single elimination bracket generation and winner advancement.

A bracket is built once from an ordered team list and a table count, then
mutated in place as match results arrive. Odd team counts get a
bye-determination round (round 0): the last team is auto-advanced and only
re-enters at the final, once the round before the final is fully decided.
"""
import copy
import logging
import math
from typing import Dict, Iterator, List, Optional, Tuple

from tablebracket.errors import MatchAlreadyDecidedError, MatchNotFoundError
from tablebracket.models import BYE_MATCH_PREFIX, Bracket, Match, Round

logger = logging.getLogger(__name__)

TEAM1 = 'team1_id'
TEAM2 = 'team2_id'

# Round kinds keying the advancement transitions
BYE_ROUND = 'bye_round'
MAIN = 'main'
PRE_FINAL = 'pre_final'
FINAL = 'final'

Placement = Tuple[Match, str]


def calculate_bracket_size(num_teams: int) -> int:
    """Calculate the bracket size (next power of 2)."""
    if num_teams <= 0:
        return 0
    return 2 ** math.ceil(math.log2(num_teams))


def calculate_round_count(num_teams: int) -> int:
    """Number of rounds for a team count, bye-determination round included."""
    if num_teams < 2:
        return 0
    if num_teams % 2 == 1:
        return 1 + int(math.log2(calculate_bracket_size(num_teams - 1)))
    return int(math.log2(calculate_bracket_size(num_teams)))


def table_for_position(position: int, table_count: int) -> int:
    """Round-robin table assignment within a round."""
    return (position % table_count) + 1


def _team_id(team) -> str:
    if isinstance(team, dict):
        return team['id']
    return getattr(team, 'id', team)


def create_bye_round(team_ids: List[str], table_count: int) -> Round:
    """Pair the first N-1 teams and auto-advance the last one."""
    num_byes = len(team_ids) // 2
    matches = []
    for i in range(num_byes):
        matches.append(Match(
            id=f'{BYE_MATCH_PREFIX}{i}',
            round=0,
            position=i,
            table_id=table_for_position(i, table_count),
            team1_id=team_ids[i * 2],
            team2_id=team_ids[i * 2 + 1],
        ))

    bye_team = team_ids[-1]
    matches.append(Match(
        id=f'{BYE_MATCH_PREFIX}{num_byes}',
        round=0,
        position=num_byes,
        table_id=table_for_position(num_byes, table_count),
        team1_id=bye_team,
        winner_id=bye_team,
    ))
    return Round(0, matches)


def create_opening_round(team_ids: List[str], table_count: int) -> Round:
    matches = []
    for i in range(len(team_ids) // 2):
        matches.append(Match(
            id=f'match-0-{i}',
            round=0,
            position=i,
            table_id=table_for_position(i, table_count),
            team1_id=team_ids[i * 2],
            team2_id=team_ids[i * 2 + 1],
        ))
    return Round(0, matches)


def create_empty_round(number: int, match_count: int, table_count: int) -> Round:
    """Placeholder round whose slots are filled by advancement."""
    matches = [
        Match(id=f'match-{number}-{i}', round=number, position=i,
              table_id=table_for_position(i, table_count))
        for i in range(match_count)
    ]
    return Round(number, matches)


def _playing_matches(rnd: Round) -> List[Match]:
    """Matches of a round that are actually contested (the bye slot excluded)."""
    return [m for m in rnd.matches if not m.is_bye]


def generate_bracket(teams, table_count: int = 1) -> Bracket:
    """
    Build the initial bracket for an ordered team list.

    ``teams`` may hold Team objects, dicts with an ``id`` key or plain ids.
    Fewer than two teams yields an empty bracket. Identical inputs always
    produce an identical bracket.
    """
    if table_count < 1:
        raise ValueError('table_count must be at least 1')

    team_ids = [_team_id(t) for t in teams]
    num_teams = len(team_ids)
    if num_teams < 2:
        return Bracket([])

    has_odd_team = num_teams % 2 == 1
    rounds = []
    if has_odd_team:
        rounds.append(create_bye_round(team_ids, table_count))

    start_round = 1 if has_odd_team else 0
    total_main_rounds = calculate_round_count(num_teams) - start_round

    for i in range(total_main_rounds):
        number = start_round + i
        if number == 0:
            rounds.append(create_opening_round(team_ids, table_count))
            continue
        previous = rounds[-1]
        # Only contested bye-round matches produce main-round entrants
        previous_count = len(_playing_matches(previous)) if previous.number == 0 else len(previous.matches)
        rounds.append(create_empty_round(number, math.ceil(previous_count / 2), table_count))

    logger.debug('Generated bracket: %d teams, %d tables, %d rounds',
                 num_teams, table_count, len(rounds))
    return Bracket(rounds)


def load_bracket(document) -> Optional[Bracket]:
    """Parse a stored bracket document; malformed data reads as no bracket."""
    if document is None:
        return None
    try:
        return Bracket.from_dict(document)
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f'Ignoring malformed bracket data: {e}')
        return None


# ---------------------------------------------------------------------------
# Advancement
# ---------------------------------------------------------------------------

def round_kind(bracket: Bracket, rnd: Round) -> str:
    if rnd is bracket.final:
        return FINAL
    if rnd.number == 0 and bracket.has_bye_round:
        return BYE_ROUND
    if bracket.next_round(rnd.number) is bracket.final:
        return PRE_FINAL
    return MAIN


def _hold_bye(bracket: Bracket, match: Match) -> Optional[Placement]:
    # The bye team re-enters only through _place_bye_team
    return None


def _finish(bracket: Bracket, match: Match) -> Optional[Placement]:
    return None


def _seed_from_bye_round(bracket: Bracket, match: Match) -> Optional[Placement]:
    playing = _playing_matches(bracket.rounds[0])
    compact_index = [m.position for m in playing].index(match.position)
    first_main = bracket.next_round(0)
    if first_main is bracket.final:
        return first_main.matches[0], TEAM2
    return first_main.matches[compact_index // 2], TEAM1 if compact_index % 2 == 0 else TEAM2


def _advance_to_final(bracket: Bracket, match: Match) -> Optional[Placement]:
    # team1 of the final is held for the bye team
    return bracket.final.matches[0], TEAM2


def _advance_default(bracket: Bracket, match: Match) -> Optional[Placement]:
    next_round = bracket.next_round(match.round)
    if next_round is None:
        return None
    position = match.position // 2
    if position >= len(next_round.matches):
        return None
    return next_round.matches[position], TEAM1 if match.position % 2 == 0 else TEAM2


# (round kind, odd tournament, bye match) -> transition
ADVANCEMENT_TRANSITIONS = {
    (BYE_ROUND, True, True): _hold_bye,
    (BYE_ROUND, True, False): _seed_from_bye_round,
    (PRE_FINAL, True, False): _advance_to_final,
    (PRE_FINAL, False, False): _advance_default,
    (MAIN, True, False): _advance_default,
    (MAIN, False, False): _advance_default,
    (FINAL, True, False): _finish,
    (FINAL, False, False): _finish,
}


def get_transition(bracket: Bracket, match: Match):
    rnd = bracket.get_round(match.round)
    key = (round_kind(bracket, rnd), bracket.has_bye_round, match.is_bye)
    return ADVANCEMENT_TRANSITIONS[key]


def feeder_count(bracket: Bracket, match: Match) -> int:
    """How many earlier matches send a winner into ``match`` (2 for a full pairing)."""
    index = bracket.round_index(match.round)
    if index == 0:
        return 2
    previous = bracket.rounds[index - 1]
    if previous.number == 0 and bracket.has_bye_round:
        sources = len(_playing_matches(previous))
    else:
        sources = len(previous.matches)
    return max(0, min(2, sources - 2 * match.position))


def is_walkover(bracket: Bracket, match: Match) -> bool:
    """A match whose second slot can never be filled advances its lone team."""
    if bracket.has_bye_round and bracket.get_round(match.round) is bracket.final:
        return False
    return feeder_count(bracket, match) < 2


def _plan_placements(bracket: Bracket, match: Match, correcting: bool) -> List[Tuple[Match, str, bool]]:
    placements = []
    current = match
    while True:
        placement = get_transition(bracket, current)(bracket, current)
        if placement is None:
            break
        target, slot = placement
        walkover = is_walkover(bracket, target)
        if correcting and target.winner_id is not None and not walkover:
            raise MatchAlreadyDecidedError(
                match.id,
                f'Cannot change the winner of {match.id}: {target.id} has already been decided'
            )
        placements.append((target, slot, walkover))
        if not walkover:
            break
        current = target
    return placements


def _find_bye_match(bracket: Bracket) -> Optional[Match]:
    if not bracket.has_bye_round:
        return None
    return next((m for m in bracket.rounds[0].matches if m.is_bye), None)


def _place_bye_team(bracket: Bracket) -> None:
    """Bring the bye team into the final once the round before it is decided."""
    bye_match = _find_bye_match(bracket)
    if bye_match is None or bye_match.winner_id is None or len(bracket.rounds) < 2:
        return
    if not bracket.rounds[-2].is_decided:
        return
    final_match = bracket.final.matches[0]
    if final_match.team1_id is None:
        final_match.team1_id = bye_match.winner_id
        logger.debug('Bye team %s placed into %s', bye_match.winner_id, final_match.id)


def advance_winner(bracket: Bracket, match_id: str, winner_id: str) -> Bracket:
    """
    Record ``winner_id`` as the winner of ``match_id`` and propagate it.

    Re-recording the same winner changes nothing. A different winner is
    treated as a correction and replaces the earlier winner downstream,
    unless a later match fed by it has already been decided. All checks run
    before the bracket is touched, so a raised error leaves it unchanged.
    """
    match = bracket.get_match(match_id)
    if match is None:
        raise MatchNotFoundError(match_id)

    previous = match.winner_id
    if previous == winner_id:
        return bracket
    correcting = previous is not None
    if correcting and match.is_bye:
        raise MatchAlreadyDecidedError(match_id, f'The bye in {match_id} cannot be reassigned')

    placements = _plan_placements(bracket, match, correcting)

    match.winner_id = winner_id
    for target, slot, walkover in placements:
        setattr(target, slot, winner_id)
        if walkover:
            target.winner_id = winner_id
        logger.debug('%s -> %s.%s%s', winner_id, target.id, slot, ' (walkover)' if walkover else '')

    _place_bye_team(bracket)
    return bracket


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def find_match(bracket: Bracket, match_id: str) -> Optional[Match]:
    return bracket.get_match(match_id)


def find_match_at(bracket: Bracket, round_number: int, position: int) -> Optional[Match]:
    return bracket.match_at(round_number, position)


def get_tournament_winner(bracket: Optional[Bracket]) -> Optional[str]:
    if bracket is None or bracket.final is None or not bracket.final.matches:
        return None
    return bracket.final.matches[0].winner_id


def is_tournament_complete(bracket: Optional[Bracket]) -> bool:
    return get_tournament_winner(bracket) is not None


def iter_active_matches(bracket: Bracket) -> Iterator[Match]:
    """Playable matches, round-major then position-minor."""
    for rnd in bracket.rounds:
        for match in rnd.matches:
            if match.is_active:
                yield match


def get_active_matches(bracket: Bracket) -> List[Match]:
    return list(iter_active_matches(bracket))


def has_match_results(bracket: Optional[Bracket]) -> bool:
    """True once any real result is recorded (the pre-set bye does not count)."""
    if bracket is None:
        return False
    return any(m.winner_id and not m.is_bye for m in bracket.iter_matches())


def get_round_name(bracket: Bracket, round_number: int) -> str:
    """Display name of a round."""
    index = bracket.round_index(round_number)
    if index is None:
        return f"Round {round_number}"
    if round_number == 0 and bracket.has_bye_round:
        return "Bye Round"

    from_end = len(bracket.rounds) - 1 - index
    if from_end == 0:
        return "Final"
    elif from_end == 1:
        return "Semifinal"
    elif from_end == 2:
        return "Quarterfinal"
    main_index = index - 1 if bracket.has_bye_round else index
    return f"Round {main_index + 1}"


def get_table_queue(bracket: Bracket, table_id: int) -> Tuple[Optional[Match], Optional[Match]]:
    """
    Return ``(current, upcoming)`` for one table.

    ``current`` is the first active match on the table in the earliest round
    that has one. ``upcoming`` is the first undecided match on the table in
    any later round.
    """
    current = None
    current_index = -1
    for index, rnd in enumerate(bracket.rounds):
        current = next((m for m in rnd.matches if m.table_id == table_id and m.is_active), None)
        if current is not None:
            current_index = index
            break

    if current is None:
        current_index = next(
            (i for i, rnd in enumerate(bracket.rounds) if any(m.table_id == table_id for m in rnd.matches)),
            -1
        )

    for rnd in bracket.rounds[current_index + 1:]:
        for match in rnd.matches:
            if match.table_id == table_id and match.winner_id is None:
                return current, match
    return current, None


def get_table_overview(bracket: Bracket, table_count: int) -> List[Dict]:
    overview = []
    for table_id in range(1, table_count + 1):
        current, upcoming = get_table_queue(bracket, table_id)
        overview.append({'table': table_id, 'current': current, 'next': upcoming})
    return overview


def bracket_summary(bracket: Bracket) -> Dict:
    """Bracket statistics for display."""
    rounds = []
    for rnd in bracket.rounds:
        rounds.append({
            'round': rnd.number,
            'name': get_round_name(bracket, rnd.number),
            'matches': len(rnd.matches),
            'decided': sum(1 for m in rnd.matches if m.winner_id),
        })
    bye_match = _find_bye_match(bracket)
    return {
        'rounds': rounds,
        'total_rounds': len(bracket.rounds),
        'bye_team': bye_match.winner_id if bye_match else None,
        'active_matches': len(get_active_matches(bracket)),
        'champion': get_tournament_winner(bracket),
    }


class BracketEngine:
    """Owns one in-memory bracket and applies match results to it."""

    def __init__(self, teams=None, table_count: int = 1, bracket: Optional[Bracket] = None):
        self.table_count = table_count
        if bracket is None:
            bracket = generate_bracket(teams or [], table_count)
        self.bracket = bracket

    @classmethod
    def from_document(cls, document: dict, table_count: int = 1) -> 'BracketEngine':
        return cls(table_count=table_count, bracket=Bracket.from_dict(document))

    def process_match_result(self, match_id: str, winner_id: str) -> Bracket:
        return advance_winner(self.bracket, match_id, winner_id)

    def get_bracket_data(self) -> Bracket:
        """Snapshot of the bracket; later results do not change it."""
        return copy.deepcopy(self.bracket)

    def get_tournament_winner(self) -> Optional[str]:
        return get_tournament_winner(self.bracket)

    def is_tournament_complete(self) -> bool:
        return is_tournament_complete(self.bracket)

    def iter_active_matches(self) -> Iterator[Match]:
        return iter_active_matches(self.bracket)

    def get_active_matches(self) -> List[Match]:
        return get_active_matches(self.bracket)

    def get_table_overview(self) -> List[Dict]:
        return get_table_overview(self.bracket, self.table_count)
