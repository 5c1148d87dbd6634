"""
Flask JSON API for Table Bracket.
"""
import os

from flask import Flask, g, jsonify, request

from tablebracket.bracket import bracket_summary, get_active_matches, get_round_name, load_bracket
from tablebracket.errors import (
    BracketError,
    ConfirmationRequiredError,
    ConflictError,
    InsufficientTeamsError,
    MatchAlreadyDecidedError,
    MatchNotFoundError,
    NoBracketError,
    RecordNotFoundError,
    ValidationError,
)
from tablebracket.service import TournamentService
from tablebracket.storage import YamlStore

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('TOURNAMENT_DATA_DIR', os.path.join(BASE_DIR, 'data'))
DEFAULT_TABLE_COUNT = int(os.environ.get('TOURNAMENT_DEFAULT_TABLES', '1'))
LOCK_TIMEOUT = float(os.environ.get('TOURNAMENT_LOCK_TIMEOUT', '10'))

app.config['DATA_DIR'] = DATA_DIR
app.config['DEFAULT_TABLE_COUNT'] = DEFAULT_TABLE_COUNT
app.config['LOCK_TIMEOUT'] = LOCK_TIMEOUT


def get_service() -> TournamentService:
    """Service bound to the configured data directory, one per request."""
    if 'service' not in g:
        store = YamlStore(app.config['DATA_DIR'], lock_timeout=app.config['LOCK_TIMEOUT'])
        g.service = TournamentService(store, default_table_count=app.config['DEFAULT_TABLE_COUNT'])
    return g.service


def _error(message, status):
    return jsonify({'success': False, 'error': message}), status


@app.errorhandler(ValidationError)
def handle_validation_error(e):
    return jsonify({'success': False, 'error': str(e), 'errors': e.errors}), 400


@app.errorhandler(InsufficientTeamsError)
def handle_insufficient_teams(e):
    return _error(str(e), 400)


@app.errorhandler(ConfirmationRequiredError)
def handle_confirmation_required(e):
    return jsonify({'success': False, 'error': str(e), 'confirmRequired': True}), 400


@app.errorhandler(NoBracketError)
def handle_no_bracket(e):
    return _error(str(e), 400)


@app.errorhandler(RecordNotFoundError)
def handle_record_not_found(e):
    return _error(str(e), 404)


@app.errorhandler(MatchNotFoundError)
def handle_match_not_found(e):
    return _error(str(e), 404)


@app.errorhandler(ConflictError)
def handle_conflict(e):
    return _error(str(e), 409)


@app.errorhandler(MatchAlreadyDecidedError)
def handle_match_decided(e):
    return _error(str(e), 409)


@app.errorhandler(BracketError)
def handle_bracket_error(e):
    app.logger.warning(f'Bracket error: {e}')
    return _error(str(e), 400)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def match_to_json(match) -> dict:
    data = match.to_dict()
    data['round'] = match.round
    return data


def bracket_to_json(bracket) -> dict:
    """Stored bracket document plus display round names."""
    if bracket is None:
        return None
    data = bracket.to_dict()
    for rnd in data['rounds']:
        rnd['name'] = get_round_name(bracket, rnd['round'])
    return data


def tournament_to_json(record: dict) -> dict:
    bracket = load_bracket(record.get('bracket'))
    data = dict(record)
    data['bracket'] = bracket_to_json(bracket)
    data['summary'] = bracket_summary(bracket) if bracket is not None else None
    return data


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------

@app.route('/api/teams', methods=['GET', 'POST'])
def api_teams():
    service = get_service()
    if request.method == 'POST':
        team = service.create_team(_json_body())
        return jsonify({'success': True, 'team': team.to_record()}), 201
    return jsonify({'success': True, 'teams': [t.to_record() for t in service.list_teams()]})


@app.route('/api/teams/<team_id>', methods=['GET', 'PUT', 'DELETE'])
def api_team(team_id):
    service = get_service()
    if request.method == 'PUT':
        team = service.update_team(team_id, _json_body())
        return jsonify({'success': True, 'team': team.to_record()})
    if request.method == 'DELETE':
        service.delete_team(team_id)
        return jsonify({'success': True})
    return jsonify({'success': True, 'team': service.get_team(team_id).to_record()})


# ---------------------------------------------------------------------------
# Free agents
# ---------------------------------------------------------------------------

@app.route('/api/free-agents', methods=['GET', 'POST'])
def api_free_agents():
    service = get_service()
    if request.method == 'POST':
        agent = service.register_free_agent(_json_body())
        return jsonify({'success': True, 'freeAgent': agent.to_record()}), 201
    agents = service.list_free_agents(request.args.get('status'))
    return jsonify({'success': True, 'freeAgents': [a.to_record() for a in agents]})


@app.route('/api/free-agents/pair', methods=['POST'])
def api_pair_free_agents():
    data = _json_body()
    team, agents = get_service().pair_free_agents(data.get('agent1Id'), data.get('agent2Id'))
    return jsonify({
        'success': True,
        'team': team.to_record(),
        'freeAgents': [a.to_record() for a in agents],
    })


@app.route('/api/free-agents/auto-pair', methods=['POST'])
def api_auto_pair_free_agents():
    pairs = get_service().auto_pair_free_agents()
    return jsonify({
        'success': True,
        'teams': [team.to_record() for team, _ in pairs],
        'paired': sum(len(agents) for _, agents in pairs),
    })


@app.route('/api/free-agents/<agent_id>/withdraw', methods=['POST'])
def api_withdraw_free_agent(agent_id):
    agent = get_service().withdraw_free_agent(agent_id)
    return jsonify({'success': True, 'freeAgent': agent.to_record()})


@app.route('/api/free-agents/<agent_id>', methods=['DELETE'])
def api_free_agent(agent_id):
    get_service().delete_free_agent(agent_id)
    return jsonify({'success': True})


# ---------------------------------------------------------------------------
# Tournaments
# ---------------------------------------------------------------------------

@app.route('/api/tournaments', methods=['GET', 'POST'])
def api_tournaments():
    service = get_service()
    if request.method == 'POST':
        data = _json_body()
        record = service.create_tournament(
            data.get('lineup') or [],
            table_count=data.get('tableCount'),
            name=data.get('name'),
            status=data.get('status', 'active'),
        )
        app.logger.info(f'Tournament {record["id"]} created via API')
        return jsonify({'success': True, 'tournament': tournament_to_json(record)}), 201
    tournaments = [
        {k: t.get(k) for k in ('id', 'name', 'status', 'tableCount', 'createdAt')}
        for t in service.list_tournaments()
    ]
    return jsonify({'success': True, 'tournaments': tournaments})


@app.route('/api/tournaments/<tournament_id>', methods=['GET', 'PUT'])
def api_tournament(tournament_id):
    service = get_service()
    if request.method == 'PUT':
        data = _json_body()
        record = service.update_settings(
            tournament_id,
            name=data.get('name'),
            status=data.get('status'),
            table_count=data.get('tableCount'),
            confirm=bool(data.get('confirm')),
        )
        return jsonify({'success': True, 'tournament': tournament_to_json(record)})
    return jsonify({'success': True, 'tournament': tournament_to_json(service.get_tournament(tournament_id))})


@app.route('/api/tournaments/<tournament_id>/lineup', methods=['PUT'])
def api_tournament_lineup(tournament_id):
    data = _json_body()
    service = get_service()
    service.regenerate_bracket(tournament_id, lineup=data.get('lineup') or [],
                               confirm=bool(data.get('confirm')))
    return jsonify({'success': True, 'tournament': tournament_to_json(service.get_tournament(tournament_id))})


@app.route('/api/tournaments/<tournament_id>/active-matches', methods=['GET'])
def api_active_matches(tournament_id):
    bracket = get_service().get_bracket(tournament_id)
    matches = get_active_matches(bracket) if bracket is not None else []
    return jsonify({'success': True, 'matches': [match_to_json(m) for m in matches]})


@app.route('/api/tournaments/<tournament_id>/tables', methods=['GET'])
def api_tournament_tables(tournament_id):
    overview = get_service().get_table_overview(tournament_id)
    tables = [
        {
            'table': entry['table'],
            'current': match_to_json(entry['current']) if entry['current'] else None,
            'next': match_to_json(entry['next']) if entry['next'] else None,
        }
        for entry in overview
    ]
    return jsonify({'success': True, 'tables': tables})


@app.route('/api/tournaments/<tournament_id>/matches', methods=['PATCH'])
@app.route('/api/tournaments/<tournament_id>/matches/<match_id>', methods=['PATCH'])
def api_record_match_winner(tournament_id, match_id=None):
    """Record a match winner, addressed by match id or by round and position."""
    data = _json_body()
    service = get_service()
    service.record_match_winner(
        tournament_id,
        data.get('winnerId'),
        match_id=match_id,
        round_number=data.get('round'),
        position=data.get('position'),
    )
    return jsonify({'success': True, 'tournament': tournament_to_json(service.get_tournament(tournament_id))})


@app.route('/api/admin/clear', methods=['POST'])
def api_admin_clear():
    get_service().clear_tournaments()
    app.logger.info('All tournaments cleared')
    return jsonify({'success': True})


if __name__ == '__main__':
    app.run(debug=True, port=5000)
