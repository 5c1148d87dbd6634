"""
Tournament service: roster, free agents and tournaments on top of a record store.

This is the caller of the bracket engine. Every write runs under the
store's lock and re-reads the latest tournament record first, so results
for one tournament are applied one at a time against a fresh bracket.
"""
import logging
from datetime import date, datetime
from typing import List, Optional, Tuple

from tablebracket.bracket import (
    BracketEngine,
    find_match_at,
    generate_bracket,
    get_table_overview,
    has_match_results,
    load_bracket,
)
from tablebracket.errors import (
    ConfirmationRequiredError,
    ConflictError,
    DuplicateFreeAgentError,
    DuplicateTeamError,
    InsufficientTeamsError,
    MatchNotFoundError,
    NoBracketError,
    ValidationError,
)
from tablebracket.models import Bracket, FreeAgent, Team
from tablebracket.storage import FREE_AGENTS, TEAMS, TOURNAMENTS, RecordStore
from tablebracket.validation import (
    validate_free_agent,
    validate_lineup,
    validate_status,
    validate_table_count,
    validate_team,
)

logger = logging.getLogger(__name__)


class TournamentService:
    def __init__(self, store: RecordStore, default_table_count: int = 1):
        self.store = store
        self.default_table_count = default_table_count

    # -- teams -------------------------------------------------------------

    def list_teams(self) -> List[Team]:
        return [Team.from_record(r) for r in self.store.list(TEAMS)]

    def get_team(self, team_id: str) -> Team:
        return Team.from_record(self.store.read(TEAMS, team_id))

    def _check_team_name(self, name: str, exclude_id: Optional[str] = None):
        for record in self.store.list(TEAMS):
            if record['id'] != exclude_id and record.get('name', '').lower() == name.lower():
                raise DuplicateTeamError(name)

    def create_team(self, data: dict) -> Team:
        fields = validate_team(data)
        with self.store.lock():
            self._check_team_name(fields['name'])
            fields['createdAt'] = datetime.now().isoformat()
            record = self.store.create(TEAMS, fields)
        logger.info(f'Created team {record["name"]} ({record["id"]})')
        return Team.from_record(record)

    def update_team(self, team_id: str, data: dict) -> Team:
        fields = validate_team(data)
        with self.store.lock():
            self.store.read(TEAMS, team_id)
            self._check_team_name(fields['name'], exclude_id=team_id)
            if 'mascotUrl' not in fields:
                fields['mascotUrl'] = None
            record = self.store.update(TEAMS, team_id, fields)
        return Team.from_record(record)

    def delete_team(self, team_id: str):
        with self.store.lock():
            self.store.read(TEAMS, team_id)
            for tournament in self.store.list(TOURNAMENTS):
                if tournament.get('status') == 'active' and team_id in (tournament.get('lineup') or []):
                    raise ConflictError(
                        f'Team is in the lineup of active tournament "{tournament.get("name")}"'
                    )
            for agent in self.store.list(FREE_AGENTS):
                if agent.get('teamId') == team_id:
                    self.store.update(FREE_AGENTS, agent['id'], {
                        'teamId': None,
                        'pairedWith': None,
                        'status': FreeAgent.WAITING,
                    })
            self.store.delete(TEAMS, team_id)
        logger.info(f'Deleted team {team_id}')

    # -- free agents -------------------------------------------------------

    def list_free_agents(self, status: Optional[str] = None) -> List[FreeAgent]:
        agents = [FreeAgent.from_record(r) for r in self.store.list(FREE_AGENTS)]
        if status:
            agents = [a for a in agents if a.status == status]
        return agents

    def get_free_agent(self, agent_id: str) -> FreeAgent:
        return FreeAgent.from_record(self.store.read(FREE_AGENTS, agent_id))

    def register_free_agent(self, data: dict) -> FreeAgent:
        fields = validate_free_agent(data)
        with self.store.lock():
            if any(r.get('phone') == fields['phone'] for r in self.store.list(FREE_AGENTS)):
                raise DuplicateFreeAgentError(fields['phone'])
            agent = FreeAgent(id=None, name=fields['name'], phone=fields['phone'],
                              created_at=datetime.now().isoformat())
            record = agent.to_record()
            del record['id']
            record = self.store.create(FREE_AGENTS, record)
        return FreeAgent.from_record(record)

    def _pair(self, first: FreeAgent, second: FreeAgent) -> Team:
        team_record = self.store.create(TEAMS, {
            'name': f'{first.name} & {second.name}',
            'player1': first.name,
            'player2': second.name,
            'createdAt': datetime.now().isoformat(),
        })
        for agent, partner in ((first, second), (second, first)):
            self.store.update(FREE_AGENTS, agent.id, {
                'status': FreeAgent.PAIRED,
                'pairedWith': partner.id,
                'teamId': team_record['id'],
            })
        logger.info(f'Paired free agents {first.name} and {second.name} into team {team_record["id"]}')
        return Team.from_record(team_record)

    def pair_free_agents(self, agent1_id: str, agent2_id: str) -> Tuple[Team, List[FreeAgent]]:
        if agent1_id == agent2_id:
            raise ValidationError('Cannot pair a free agent with themselves')
        with self.store.lock():
            first = self.get_free_agent(agent1_id)
            second = self.get_free_agent(agent2_id)
            for agent in (first, second):
                if agent.status != FreeAgent.WAITING:
                    raise ConflictError(f'{agent.name} is not waiting to be paired')
            team = self._pair(first, second)
            return team, [self.get_free_agent(agent1_id), self.get_free_agent(agent2_id)]

    def auto_pair_free_agents(self) -> List[Tuple[Team, List[FreeAgent]]]:
        """Pair waiting agents in registration order; an odd one out keeps waiting."""
        with self.store.lock():
            waiting = self.list_free_agents(FreeAgent.WAITING)
            if len(waiting) < 2:
                raise ValidationError('Need at least 2 waiting agents to pair')
            pairs = []
            for i in range(0, len(waiting) - 1, 2):
                first, second = waiting[i], waiting[i + 1]
                team = self._pair(first, second)
                pairs.append((team, [self.get_free_agent(first.id), self.get_free_agent(second.id)]))
            return pairs

    def delete_free_agent(self, agent_id: str):
        with self.store.lock():
            self.store.read(FREE_AGENTS, agent_id)
            for agent in self.store.list(FREE_AGENTS):
                if agent.get('pairedWith') == agent_id:
                    self.store.update(FREE_AGENTS, agent['id'], {
                        'pairedWith': None,
                        'status': FreeAgent.WAITING,
                    })
            self.store.delete(FREE_AGENTS, agent_id)

    def withdraw_free_agent(self, agent_id: str) -> FreeAgent:
        """Take a waiting agent out of the pairing pool without deleting them."""
        with self.store.lock():
            agent = self.get_free_agent(agent_id)
            if agent.status != FreeAgent.WAITING:
                raise ConflictError(f'{agent.name} is not waiting to be paired')
            record = self.store.update(FREE_AGENTS, agent_id, {'status': FreeAgent.WITHDRAWN})
        logger.info(f'Free agent {agent_id} withdrew')
        return FreeAgent.from_record(record)

    # -- tournaments -------------------------------------------------------

    def list_tournaments(self) -> List[dict]:
        return self.store.list(TOURNAMENTS)

    def get_tournament(self, tournament_id: str) -> dict:
        return self.store.read(TOURNAMENTS, tournament_id)

    def get_bracket(self, tournament_id: str) -> Optional[Bracket]:
        """Stored bracket, or None when it is missing or malformed."""
        return load_bracket(self.get_tournament(tournament_id).get('bracket'))

    def _checked_lineup(self, lineup) -> List[str]:
        known = {r['id'] for r in self.store.list(TEAMS)}
        lineup = validate_lineup(lineup, known)
        if len(lineup) < 2:
            raise InsufficientTeamsError(len(lineup))
        return lineup

    def create_tournament(self, lineup, table_count=None, name: Optional[str] = None,
                          status: str = 'active') -> dict:
        table_count = validate_table_count(
            table_count if table_count is not None else self.default_table_count)
        status = validate_status(status)
        with self.store.lock():
            lineup = self._checked_lineup(lineup)
            bracket = generate_bracket(lineup, table_count)
            if status == 'active':
                self._complete_other_active()

            record = self.store.create(TOURNAMENTS, {
                'name': (name or '').strip() or f'Tournament {date.today().isoformat()}',
                'status': status,
                'tableCount': table_count,
                'lineup': lineup,
                'bracket': bracket.to_dict(),
                'createdAt': datetime.now().isoformat(),
            })
        logger.info(f'Created tournament {record["id"]}: {len(lineup)} teams, {table_count} tables')
        return record

    def _complete_other_active(self, tournament_id: Optional[str] = None):
        """One live tournament at a time: every other active one is completed."""
        for other in self.store.list(TOURNAMENTS):
            if other['id'] != tournament_id and other.get('status') == 'active':
                self.store.update(TOURNAMENTS, other['id'], {'status': 'completed'})
                logger.info(f'Tournament {other["id"]} completed: {tournament_id} is now active')

    def _save_tournament(self, tournament_id: str, changes: dict) -> dict:
        if changes.get('status') == 'active':
            self._complete_other_active(tournament_id)
        return self.store.update(TOURNAMENTS, tournament_id, changes)

    def update_settings(self, tournament_id: str, name: Optional[str] = None,
                        status: Optional[str] = None, table_count=None,
                        confirm: bool = False) -> dict:
        """
        Rename, change status and optionally the table count in one write.

        A table-count change regenerates the bracket; everything is
        validated before anything is stored.
        """
        changes = {}
        if name is not None:
            name = str(name).strip()
            if not name:
                raise ValidationError('Tournament name is required')
            changes['name'] = name
        if status is not None:
            changes['status'] = validate_status(status)
        with self.store.lock():
            record = self.store.read(TOURNAMENTS, tournament_id)
            if table_count is not None:
                _, regenerated = self._regenerated(record, None, table_count, confirm)
                regenerated.update(changes)
                changes = regenerated
            return self._save_tournament(tournament_id, changes)

    def record_match_winner(self, tournament_id: str, winner_id: str, match_id: Optional[str] = None,
                            round_number: Optional[int] = None, position: Optional[int] = None) -> Bracket:
        """
        Apply one match result and persist the whole bracket.

        The match is named either by ``match_id`` or by ``(round_number, position)``.
        """
        if not winner_id:
            raise ValidationError('Winner is required')
        with self.store.lock():
            record = self.store.read(TOURNAMENTS, tournament_id)
            bracket = load_bracket(record.get('bracket'))
            if bracket is None:
                raise NoBracketError(tournament_id)

            if match_id is None:
                if round_number is None or position is None:
                    raise ValidationError('Match id or round and position are required')
                try:
                    round_number, position = int(round_number), int(position)
                except (TypeError, ValueError):
                    raise ValidationError('Round and position must be whole numbers')
                match = find_match_at(bracket, round_number, position)
                if match is None:
                    raise MatchNotFoundError(f'at round {round_number}, position {position}')
                match_id = match.id

            engine = BracketEngine(table_count=record.get('tableCount', 1), bracket=bracket)
            engine.process_match_result(match_id, winner_id)

            changes = {'bracket': bracket.to_dict()}
            if engine.is_tournament_complete():
                changes['status'] = 'completed'
            self.store.update(TOURNAMENTS, tournament_id, changes)

        logger.info(f'Tournament {tournament_id}: {winner_id} won {match_id}')
        if engine.is_tournament_complete():
            logger.info(f'Tournament {tournament_id} complete, winner {engine.get_tournament_winner()}')
        return bracket

    def _regenerated(self, record: dict, lineup, table_count, confirm: bool) -> Tuple[Bracket, dict]:
        """New bracket and the record changes for it; nothing is written."""
        new_lineup = self._checked_lineup(lineup if lineup is not None else record.get('lineup') or [])
        new_table_count = validate_table_count(
            table_count if table_count is not None else record.get('tableCount', 1))

        if has_match_results(load_bracket(record.get('bracket'))) and not confirm:
            raise ConfirmationRequiredError(record['id'])

        bracket = generate_bracket(new_lineup, new_table_count)
        changes = {
            'lineup': new_lineup,
            'tableCount': new_table_count,
            'bracket': bracket.to_dict(),
        }
        if record.get('status') == 'completed':
            changes['status'] = 'active'
        logger.info(f'Regenerated bracket for tournament {record["id"]}: '
                    f'{len(new_lineup)} teams, {new_table_count} tables')
        return bracket, changes

    def regenerate_bracket(self, tournament_id: str, lineup=None, table_count=None,
                           confirm: bool = False) -> Bracket:
        """
        Replace the bracket after a lineup or table-count change.

        Every recorded result is discarded, so a bracket that already has
        results is only replaced when ``confirm`` is set.
        """
        with self.store.lock():
            record = self.store.read(TOURNAMENTS, tournament_id)
            bracket, changes = self._regenerated(record, lineup, table_count, confirm)
            self._save_tournament(tournament_id, changes)
        return bracket

    def get_table_overview(self, tournament_id: str) -> List[dict]:
        record = self.get_tournament(tournament_id)
        bracket = load_bracket(record.get('bracket'))
        if bracket is None:
            return []
        return get_table_overview(bracket, record.get('tableCount', 1))

    def clear_tournaments(self):
        self.store.clear(TOURNAMENTS)
        logger.info('Cleared all tournaments')
