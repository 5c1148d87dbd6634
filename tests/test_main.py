"""
Tests for the command line front end.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import main
from tablebracket.service import TournamentService
from tablebracket.storage import YamlStore


@pytest.fixture
def data_dir(tmp_path):
    return str(tmp_path / 'data')


def run(data_dir, *args):
    return main.main(['--data-dir', data_dir, *args])


def seed_tournament(data_dir, count, tables=1):
    service = TournamentService(YamlStore(data_dir))
    ids = [service.create_team({'name': f'Team {i}', 'player1': 'a', 'player2': 'b'}).id
           for i in range(1, count + 1)]
    record = service.create_tournament(ids, table_count=tables)
    return service, record['id'], ids


class TestTeamCommands:
    """Tests for add-team and teams."""

    def test_add_and_list(self, data_dir, capsys):
        assert run(data_dir, 'add-team', 'Sharks', 'Ann', 'Bob') == 0
        assert run(data_dir, 'teams') == 0
        out = capsys.readouterr().out
        assert 'Created team Sharks' in out
        assert 'Sharks (Ann & Bob)' in out

    def test_invalid_team(self, data_dir, capsys):
        assert run(data_dir, 'add-team', 'Sharks', 'Ann', 'Bob', '--mascot', 'not-a-url') == main.EXIT_INVALID
        assert 'Error: Invalid URL' in capsys.readouterr().err

    def test_duplicate_team(self, data_dir, capsys):
        run(data_dir, 'add-team', 'Sharks', 'Ann', 'Bob')
        assert run(data_dir, 'add-team', 'sharks', 'Cy', 'Dee') == main.EXIT_CONFLICT


class TestTournamentCommands:
    """Tests for create, show, record and regenerate."""

    def test_create_and_show(self, data_dir, capsys):
        service = TournamentService(YamlStore(data_dir))
        ids = [service.create_team({'name': f'Team {i}', 'player1': 'a', 'player2': 'b'}).id for i in range(3)]
        assert run(data_dir, 'create', *ids, '--tables', '2', '--name', 'Cup') == 0
        out = capsys.readouterr().out
        assert 'Created tournament Cup' in out
        assert 'Bye Round:' in out
        assert 'Team 2 (bye)' in out

    def test_create_needs_two_teams(self, data_dir, capsys):
        service = TournamentService(YamlStore(data_dir))
        team = service.create_team({'name': 'Solo', 'player1': 'a', 'player2': 'b'})
        assert run(data_dir, 'create', team.id) == main.EXIT_INVALID
        assert 'at least 2 teams' in capsys.readouterr().err

    def test_show_unknown(self, data_dir):
        assert run(data_dir, 'show', 'missing') == main.EXIT_NOT_FOUND

    def test_record_by_match(self, data_dir, capsys):
        service, tid, ids = seed_tournament(data_dir, 2)
        assert run(data_dir, 'record', tid, ids[1], '--match', 'match-0-0') == 0
        assert 'Champion: Team 2' in capsys.readouterr().out
        assert service.get_tournament(tid)['status'] == 'completed'

    def test_record_by_round_and_position(self, data_dir):
        service, tid, ids = seed_tournament(data_dir, 4)
        assert run(data_dir, 'record', tid, ids[2], '--round', '0', '--position', '1') == 0
        assert service.get_bracket(tid).get_match('match-1-0').team2_id == ids[2]

    def test_record_needs_match_reference(self, data_dir):
        _, tid, ids = seed_tournament(data_dir, 4)
        assert run(data_dir, 'record', tid, ids[0], '--round', '0') == main.EXIT_INVALID

    def test_record_unknown_match(self, data_dir):
        _, tid, ids = seed_tournament(data_dir, 4)
        assert run(data_dir, 'record', tid, ids[0], '--match', 'match-9-0') == main.EXIT_NOT_FOUND

    def test_active_and_tables(self, data_dir, capsys):
        _, tid, _ = seed_tournament(data_dir, 4, tables=2)
        assert run(data_dir, 'active', tid) == 0
        assert run(data_dir, 'tables', tid) == 0
        out = capsys.readouterr().out
        assert '[match-0-1] table 2: Team 3 vs Team 4' in out
        assert 'Table 2:' in out

    def test_set_tables_needs_yes_after_results(self, data_dir, capsys):
        service, tid, ids = seed_tournament(data_dir, 4)
        run(data_dir, 'record', tid, ids[0], '--match', 'match-0-0')
        assert run(data_dir, 'set-tables', tid, '2') == main.EXIT_INVALID
        assert '--yes' in capsys.readouterr().err
        assert run(data_dir, 'set-tables', tid, '2', '--yes') == 0
        assert service.get_tournament(tid)['tableCount'] == 2

    def test_lineup(self, data_dir):
        service, tid, ids = seed_tournament(data_dir, 4)
        assert run(data_dir, 'lineup', tid, *ids[:3]) == 0
        assert service.get_bracket(tid).has_bye_round
