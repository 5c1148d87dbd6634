"""
Tests for winner advancement, bye insertion and result corrections.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from tablebracket.bracket import (
    ADVANCEMENT_TRANSITIONS,
    BYE_ROUND,
    FINAL,
    MAIN,
    PRE_FINAL,
    BracketEngine,
    advance_winner,
    generate_bracket,
    get_active_matches,
    get_transition,
    is_tournament_complete,
    round_kind,
)
from tablebracket.errors import MatchAlreadyDecidedError, MatchNotFoundError
from tablebracket.models import Bracket


def ids(count):
    return [f't{i}' for i in range(1, count + 1)]


def slots(bracket, match_id):
    match = bracket.get_match(match_id)
    return match.team1_id, match.team2_id, match.winner_id


class TestFourTeams:
    """End-to-end scenario with 4 teams on one table."""

    def test_full_tournament(self):
        engine = BracketEngine(ids(4), table_count=1)
        engine.process_match_result('match-0-0', 't1')
        engine.process_match_result('match-0-1', 't3')
        assert slots(engine.bracket, 'match-1-0') == ('t1', 't3', None)

        engine.process_match_result('match-1-0', 't1')
        assert engine.get_tournament_winner() == 't1'
        assert engine.is_tournament_complete()
        assert engine.get_active_matches() == []

    def test_odd_position_fills_team2(self):
        """Test a winner from an odd position lands in team2 of the next round."""
        bracket = generate_bracket(ids(4))
        advance_winner(bracket, 'match-0-1', 't4')
        assert slots(bracket, 'match-1-0') == (None, 't4', None)

    def test_returns_same_bracket(self):
        bracket = generate_bracket(ids(4))
        assert advance_winner(bracket, 'match-0-0', 't2') is bracket

    def test_eight_teams_default_mapping(self):
        bracket = generate_bracket(ids(8))
        advance_winner(bracket, 'match-0-2', 't5')
        advance_winner(bracket, 'match-0-3', 't8')
        assert slots(bracket, 'match-1-1') == ('t5', 't8', None)
        advance_winner(bracket, 'match-1-1', 't8')
        assert slots(bracket, 'match-2-0') == (None, 't8', None)


class TestFiveTeams:
    """End-to-end scenario with 5 teams and a bye."""

    def test_full_tournament(self):
        engine = BracketEngine(ids(5), table_count=1)
        engine.process_match_result('bye-match-0', 't1')
        engine.process_match_result('bye-match-1', 't3')
        assert slots(engine.bracket, 'match-1-0') == ('t1', 't3', None)
        # The bye team waits until the round before the final is decided
        assert slots(engine.bracket, 'match-2-0') == (None, None, None)

        engine.process_match_result('match-1-0', 't3')
        assert slots(engine.bracket, 'match-2-0') == ('t5', 't3', None)
        assert [m.id for m in engine.get_active_matches()] == ['match-2-0']

        engine.process_match_result('match-2-0', 't5')
        assert engine.get_tournament_winner() == 't5'

    def test_bye_match_reprocessed_same_winner(self):
        """Test re-recording the bye is a no-op."""
        bracket = generate_bracket(ids(5))
        before = bracket.to_dict()
        advance_winner(bracket, 'bye-match-2', 't5')
        assert bracket.to_dict() == before

    def test_bye_cannot_be_reassigned(self):
        bracket = generate_bracket(ids(5))
        with pytest.raises(MatchAlreadyDecidedError):
            advance_winner(bracket, 'bye-match-2', 't1')
        assert bracket.get_match('bye-match-2').winner_id == 't5'

    def test_order_of_results_does_not_matter(self):
        """Test the bye-round results can arrive in any order."""
        bracket = generate_bracket(ids(5))
        advance_winner(bracket, 'bye-match-1', 't4')
        advance_winner(bracket, 'bye-match-0', 't2')
        assert slots(bracket, 'match-1-0') == ('t2', 't4', None)


class TestThreeTeams:
    """Tests for the smallest odd bracket, where round 1 is the final."""

    def test_final_becomes_active_after_bye_round(self):
        bracket = generate_bracket(ids(3))
        assert get_active_matches(bracket)[0].id == 'bye-match-0'
        advance_winner(bracket, 'bye-match-0', 't2')
        assert slots(bracket, 'match-1-0') == ('t3', 't2', None)
        assert [m.id for m in get_active_matches(bracket)] == ['match-1-0']

    def test_winner(self):
        bracket = generate_bracket(ids(3))
        advance_winner(bracket, 'bye-match-0', 't1')
        advance_winner(bracket, 'match-1-0', 't1')
        assert is_tournament_complete(bracket)


class TestWalkovers:
    """Tests for matches with a single feeder."""

    def test_six_teams(self):
        """Test the unpaired round-1 slot advances its team on arrival."""
        bracket = generate_bracket(ids(6))
        advance_winner(bracket, 'match-0-2', 't5')
        assert slots(bracket, 'match-1-1') == ('t5', None, 't5')
        assert slots(bracket, 'match-2-0') == (None, 't5', None)

        advance_winner(bracket, 'match-0-0', 't1')
        advance_winner(bracket, 'match-0-1', 't4')
        advance_winner(bracket, 'match-1-0', 't4')
        assert slots(bracket, 'match-2-0') == ('t4', 't5', None)
        advance_winner(bracket, 'match-2-0', 't5')
        assert is_tournament_complete(bracket)

    def test_seven_teams(self):
        bracket = generate_bracket(ids(7))
        advance_winner(bracket, 'bye-match-0', 't1')
        advance_winner(bracket, 'bye-match-1', 't3')
        advance_winner(bracket, 'bye-match-2', 't5')
        assert slots(bracket, 'match-1-1') == ('t5', None, 't5')
        assert slots(bracket, 'match-2-0') == (None, 't5', None)

        advance_winner(bracket, 'match-1-0', 't3')
        advance_winner(bracket, 'match-2-0', 't3')
        assert slots(bracket, 'match-3-0') == ('t7', 't3', None)

    @pytest.mark.parametrize('count', range(2, 18))
    def test_every_size_completes(self, count):
        """Test playing team1 of every active match always reaches a champion."""
        bracket = generate_bracket(ids(count))
        for _ in range(count * 2):
            active = get_active_matches(bracket)
            if not active:
                break
            advance_winner(bracket, active[0].id, active[0].team1_id)
        assert is_tournament_complete(bracket)


class TestCorrections:
    """Tests for recording a different winner on a decided match."""

    def test_same_winner_is_noop(self):
        bracket = generate_bracket(ids(4))
        advance_winner(bracket, 'match-0-0', 't1')
        before = bracket.to_dict()
        advance_winner(bracket, 'match-0-0', 't1')
        assert bracket.to_dict() == before

    def test_correction_replaces_next_slot(self):
        """Test a corrected winner supersedes the stale one downstream."""
        bracket = generate_bracket(ids(4))
        advance_winner(bracket, 'match-0-0', 't1')
        advance_winner(bracket, 'match-0-0', 't2')
        assert slots(bracket, 'match-0-0')[2] == 't2'
        assert slots(bracket, 'match-1-0') == ('t2', None, None)

    def test_correction_rejected_once_downstream_decided(self):
        bracket = generate_bracket(ids(4))
        advance_winner(bracket, 'match-0-0', 't1')
        advance_winner(bracket, 'match-0-1', 't3')
        advance_winner(bracket, 'match-1-0', 't3')
        before = bracket.to_dict()
        with pytest.raises(MatchAlreadyDecidedError):
            advance_winner(bracket, 'match-0-0', 't2')
        assert bracket.to_dict() == before

    def test_correction_through_walkover(self):
        """Test walkover matches are corrected along the chain."""
        bracket = generate_bracket(ids(6))
        advance_winner(bracket, 'match-0-2', 't5')
        advance_winner(bracket, 'match-0-2', 't6')
        assert slots(bracket, 'match-1-1') == ('t6', None, 't6')
        assert slots(bracket, 'match-2-0') == (None, 't6', None)

    def test_final_correction(self):
        bracket = generate_bracket(ids(2))
        advance_winner(bracket, 'match-0-0', 't1')
        advance_winner(bracket, 'match-0-0', 't2')
        assert bracket.final.matches[0].winner_id == 't2'


class TestUnknownMatch:
    """Tests for unknown match ids."""

    def test_raises_and_leaves_bracket_unchanged(self):
        bracket = generate_bracket(ids(5))
        advance_winner(bracket, 'bye-match-0', 't1')
        before = bracket.to_dict()
        with pytest.raises(MatchNotFoundError) as exc_info:
            advance_winner(bracket, 'match-9-9', 't1')
        assert exc_info.value.match_id == 'match-9-9'
        assert bracket.to_dict() == before

    def test_empty_bracket(self):
        with pytest.raises(MatchNotFoundError):
            advance_winner(Bracket([]), 'match-0-0', 't1')


class TestTransitionTable:
    """Tests for the advancement transition lookup."""

    def test_round_kinds_five_teams(self):
        bracket = generate_bracket(ids(5))
        assert [round_kind(bracket, r) for r in bracket.rounds] == [BYE_ROUND, PRE_FINAL, FINAL]

    def test_round_kinds_eight_teams(self):
        bracket = generate_bracket(ids(8))
        assert [round_kind(bracket, r) for r in bracket.rounds] == [MAIN, PRE_FINAL, FINAL]

    def test_bye_match_holds(self):
        bracket = generate_bracket(ids(5))
        bye = bracket.get_match('bye-match-2')
        assert get_transition(bracket, bye)(bracket, bye) is None

    def test_every_generated_match_has_a_transition(self):
        for count in range(2, 18):
            bracket = generate_bracket(ids(count))
            for match in bracket.iter_matches():
                assert get_transition(bracket, match) in ADVANCEMENT_TRANSITIONS.values()


class TestEngineSnapshot:
    """Tests for the BracketEngine facade."""

    def test_snapshot_is_detached(self):
        engine = BracketEngine(ids(4))
        snapshot = engine.get_bracket_data()
        engine.process_match_result('match-0-0', 't1')
        assert snapshot.get_match('match-0-0').winner_id is None

    def test_from_document_round_trip(self):
        """Test a partly played bracket survives storage and keeps advancing."""
        engine = BracketEngine(ids(5), table_count=2)
        engine.process_match_result('bye-match-0', 't2')
        restored = BracketEngine.from_document(engine.bracket.to_dict(), table_count=2)
        assert restored.bracket == engine.bracket
        restored.process_match_result('bye-match-1', 't4')
        assert slots(restored.bracket, 'match-1-0') == ('t2', 't4', None)

    def test_empty_engine(self):
        engine = BracketEngine([])
        assert engine.get_tournament_winner() is None
        assert not engine.is_tournament_complete()
        assert list(engine.iter_active_matches()) == []
