"""
Input validation for teams, free agents and tournament settings.
"""
import re

from tablebracket.errors import ValidationError

MAX_NAME_LENGTH = 100
MAX_PHONE_LENGTH = 20
TOURNAMENT_STATUSES = ('pending', 'active', 'completed')

_URL_RE = re.compile(r'^https?://[^\s/$.?#][^\s]*$', re.IGNORECASE)


def _text_field(data: dict, field: str, label: str, max_length: int, errors: list) -> str:
    value = data.get(field)
    value = str(value).strip() if value is not None else ''
    if not value:
        errors.append(f'{label} is required')
    elif len(value) > max_length:
        errors.append(f'{label} too long')
    return value


def validate_team(data: dict) -> dict:
    """Return the cleaned team fields or raise ValidationError."""
    if not isinstance(data, dict):
        raise ValidationError('Invalid team data')
    errors = []
    cleaned = {
        'name': _text_field(data, 'name', 'Team name', MAX_NAME_LENGTH, errors),
        'player1': _text_field(data, 'player1', 'Player 1 name', MAX_NAME_LENGTH, errors),
        'player2': _text_field(data, 'player2', 'Player 2 name', MAX_NAME_LENGTH, errors),
    }
    mascot_url = data.get('mascotUrl')
    mascot_url = str(mascot_url).strip() if mascot_url is not None else ''
    if mascot_url:
        if not _URL_RE.match(mascot_url):
            errors.append('Invalid URL')
        cleaned['mascotUrl'] = mascot_url
    if errors:
        raise ValidationError(errors)
    return cleaned


def validate_free_agent(data: dict) -> dict:
    if not isinstance(data, dict):
        raise ValidationError('Invalid free agent data')
    errors = []
    cleaned = {
        'name': _text_field(data, 'name', 'Name', MAX_NAME_LENGTH, errors),
        'phone': _text_field(data, 'phone', 'Phone number', MAX_PHONE_LENGTH, errors),
    }
    if errors:
        raise ValidationError(errors)
    return cleaned


def validate_table_count(value) -> int:
    try:
        table_count = int(value)
    except (TypeError, ValueError):
        raise ValidationError('Table count must be a whole number')
    if table_count < 1:
        raise ValidationError('Table count must be at least 1')
    return table_count


def validate_status(value) -> str:
    if value not in TOURNAMENT_STATUSES:
        raise ValidationError(f'Status must be one of: {", ".join(TOURNAMENT_STATUSES)}')
    return value


def validate_lineup(lineup, known_team_ids) -> list:
    """Check an ordered list of team ids against the roster."""
    if not isinstance(lineup, (list, tuple)):
        raise ValidationError('Lineup must be a list of team ids')
    lineup = [str(team_id) for team_id in lineup]
    errors = []
    seen = set()
    for team_id in lineup:
        if team_id in seen:
            errors.append(f'Team {team_id} appears more than once in the lineup')
        seen.add(team_id)
        if team_id not in known_team_ids:
            errors.append(f'Team {team_id} not found')
    if errors:
        raise ValidationError(errors)
    return lineup
