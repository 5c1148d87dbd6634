"""
Command line front end for Table Bracket.

Works on the same YAML data directory as the web app.
"""
import argparse
import logging
import os
import sys

from tablebracket.bracket import bracket_summary, get_active_matches, get_round_name, load_bracket
from tablebracket.errors import (
    BracketError,
    ConfirmationRequiredError,
    ConflictError,
    MatchAlreadyDecidedError,
    MatchNotFoundError,
    RecordNotFoundError,
    ValidationError,
)
from tablebracket.service import TournamentService
from tablebracket.storage import YamlStore

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DEFAULT_DATA_DIR = os.environ.get('TOURNAMENT_DATA_DIR', os.path.join(BASE_DIR, 'data'))
DEFAULT_TABLE_COUNT = int(os.environ.get('TOURNAMENT_DEFAULT_TABLES', '1'))
LOCK_TIMEOUT = float(os.environ.get('TOURNAMENT_LOCK_TIMEOUT', '10'))

EXIT_INVALID = 1
EXIT_NOT_FOUND = 2
EXIT_CONFLICT = 3


def _team_names(service):
    return {t.id: t.name for t in service.list_teams()}


def _label(team_id, names):
    if team_id is None:
        return 'TBD'
    return names.get(team_id, team_id)


def _describe_match(match, names):
    line = f"  [{match.id}] table {match.table_id}: {_label(match.team1_id, names)} vs {_label(match.team2_id, names)}"
    if match.is_bye:
        line = f"  [{match.id}] {_label(match.team1_id, names)} (bye)"
    elif match.winner_id:
        line += f" -> {_label(match.winner_id, names)}"
    return line


def print_bracket(service, record):
    names = _team_names(service)
    print(f"{record['name']} ({record['id']}) - {record['status']}, {record.get('tableCount', 1)} table(s)")
    bracket = load_bracket(record.get('bracket'))
    if bracket is None or bracket.is_empty:
        print("No bracket data. Update the lineup to regenerate it.")
        return
    for rnd in bracket.rounds:
        print(f"{get_round_name(bracket, rnd.number)}:")
        for match in rnd.matches:
            print(_describe_match(match, names))
    champion = bracket_summary(bracket)['champion']
    if champion:
        print(f"Champion: {_label(champion, names)}")


def cmd_add_team(service, args):
    team = service.create_team({
        'name': args.name,
        'player1': args.player1,
        'player2': args.player2,
        'mascotUrl': args.mascot,
    })
    print(f"Created team {team.name}: {team.id}")


def cmd_teams(service, args):
    teams = service.list_teams()
    if not teams:
        print("No teams yet.")
    for team in teams:
        print(f"{team.id}  {team.name} ({team.player1} & {team.player2})")


def cmd_create(service, args):
    record = service.create_tournament(args.teams, table_count=args.tables, name=args.name)
    print(f"Created tournament {record['name']}: {record['id']}")
    print_bracket(service, record)


def cmd_show(service, args):
    print_bracket(service, service.get_tournament(args.tournament))


def cmd_active(service, args):
    names = _team_names(service)
    bracket = service.get_bracket(args.tournament)
    matches = get_active_matches(bracket) if bracket is not None else []
    if not matches:
        print("No matches ready to play.")
    for match in matches:
        print(_describe_match(match, names))


def cmd_tables(service, args):
    names = _team_names(service)
    for entry in service.get_table_overview(args.tournament):
        current, upcoming = entry['current'], entry['next']
        print(f"Table {entry['table']}:")
        print(f"  now:  {_describe_match(current, names).strip() if current else '-'}")
        print(f"  next: {_describe_match(upcoming, names).strip() if upcoming else '-'}")


def cmd_record(service, args):
    if args.match is None and (args.round is None or args.position is None):
        raise ValidationError('Give --match or both --round and --position')
    service.record_match_winner(args.tournament, args.winner, match_id=args.match,
                                round_number=args.round, position=args.position)
    print_bracket(service, service.get_tournament(args.tournament))


def cmd_lineup(service, args):
    service.regenerate_bracket(args.tournament, lineup=args.teams, confirm=args.yes)
    print_bracket(service, service.get_tournament(args.tournament))


def cmd_set_tables(service, args):
    service.regenerate_bracket(args.tournament, table_count=args.count, confirm=args.yes)
    print_bracket(service, service.get_tournament(args.tournament))


def build_parser():
    parser = argparse.ArgumentParser(description='Single-elimination brackets for table tournaments')
    parser.add_argument('--data-dir', default=DEFAULT_DATA_DIR,
                        help='Data directory (default: $TOURNAMENT_DATA_DIR or ./data)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    commands = parser.add_subparsers(dest='command', required=True)

    p = commands.add_parser('add-team', help='Register a team')
    p.add_argument('name')
    p.add_argument('player1')
    p.add_argument('player2')
    p.add_argument('--mascot', help='Mascot image URL')
    p.set_defaults(func=cmd_add_team)

    p = commands.add_parser('teams', help='List teams')
    p.set_defaults(func=cmd_teams)

    p = commands.add_parser('create', help='Create a tournament from team ids, in seeding order')
    p.add_argument('teams', nargs='+')
    p.add_argument('--tables', type=int, help='Number of tables')
    p.add_argument('--name')
    p.set_defaults(func=cmd_create)

    p = commands.add_parser('show', help='Print a bracket')
    p.add_argument('tournament')
    p.set_defaults(func=cmd_show)

    p = commands.add_parser('active', help='List matches ready to play')
    p.add_argument('tournament')
    p.set_defaults(func=cmd_active)

    p = commands.add_parser('tables', help='Current and next match per table')
    p.add_argument('tournament')
    p.set_defaults(func=cmd_tables)

    p = commands.add_parser('record', help='Record a match winner')
    p.add_argument('tournament')
    p.add_argument('winner')
    p.add_argument('--match', help='Match id')
    p.add_argument('--round', type=int)
    p.add_argument('--position', type=int)
    p.set_defaults(func=cmd_record)

    p = commands.add_parser('lineup', help='Replace the lineup and regenerate the bracket')
    p.add_argument('tournament')
    p.add_argument('teams', nargs='+')
    p.add_argument('--yes', action='store_true', help='Discard recorded results')
    p.set_defaults(func=cmd_lineup)

    p = commands.add_parser('set-tables', help='Change the table count and regenerate the bracket')
    p.add_argument('tournament')
    p.add_argument('count', type=int)
    p.add_argument('--yes', action='store_true', help='Discard recorded results')
    p.set_defaults(func=cmd_set_tables)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(levelname)s %(name)s: %(message)s',
    )

    service = TournamentService(YamlStore(args.data_dir, lock_timeout=LOCK_TIMEOUT),
                                default_table_count=DEFAULT_TABLE_COUNT)
    try:
        args.func(service, args)
    except (RecordNotFoundError, MatchNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_NOT_FOUND
    except (ConflictError, MatchAlreadyDecidedError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFLICT
    except ConfirmationRequiredError as e:
        print(f"Error: {e} Re-run with --yes.", file=sys.stderr)
        return EXIT_INVALID
    except (ValidationError, BracketError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INVALID
    return 0


if __name__ == '__main__':
    sys.exit(main())
