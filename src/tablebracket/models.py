"""
Value types for teams, free agents and the bracket tree.

The bracket serialises to the plain nested document stored with a
tournament record: ``{'rounds': [{'round': n, 'matches': [...]}]}`` where
each match carries ``id``, ``position``, ``tableId`` and the optional
``team1Id``, ``team2Id`` and ``winnerId`` keys (absent when unset).
"""
from typing import Dict, List, Optional

BYE_MATCH_PREFIX = 'bye-match-'


class Team:
    def __init__(self, id, name, player1='', player2='', mascot_url=None, created_at=None):
        self.id = id
        self.name = name
        self.player1 = player1
        self.player2 = player2
        self.mascot_url = mascot_url
        self.created_at = created_at

    @classmethod
    def from_record(cls, record: dict) -> 'Team':
        return cls(
            id=record['id'],
            name=record.get('name', ''),
            player1=record.get('player1', ''),
            player2=record.get('player2', ''),
            mascot_url=record.get('mascotUrl'),
            created_at=record.get('createdAt'),
        )

    def to_record(self) -> dict:
        record = {
            'id': self.id,
            'name': self.name,
            'player1': self.player1,
            'player2': self.player2,
        }
        if self.mascot_url:
            record['mascotUrl'] = self.mascot_url
        if self.created_at:
            record['createdAt'] = self.created_at
        return record

    def __repr__(self):
        return f"Team(id={self.id}, name={self.name})"


class FreeAgent:
    WAITING = 'waiting'
    PAIRED = 'paired'
    WITHDRAWN = 'withdrawn'

    def __init__(self, id, name, phone, status='waiting', paired_with=None, team_id=None, created_at=None):
        self.id = id
        self.name = name
        self.phone = phone
        self.status = status
        self.paired_with = paired_with
        self.team_id = team_id
        self.created_at = created_at

    @classmethod
    def from_record(cls, record: dict) -> 'FreeAgent':
        return cls(
            id=record['id'],
            name=record.get('name', ''),
            phone=record.get('phone', ''),
            status=record.get('status', cls.WAITING),
            paired_with=record.get('pairedWith'),
            team_id=record.get('teamId'),
            created_at=record.get('createdAt'),
        )

    def to_record(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'phone': self.phone,
            'status': self.status,
            'pairedWith': self.paired_with,
            'teamId': self.team_id,
            'createdAt': self.created_at,
        }

    def __repr__(self):
        return f"FreeAgent(name={self.name}, status={self.status})"


class Match:
    def __init__(self, id, round, position, table_id, team1_id=None, team2_id=None, winner_id=None):
        self.id = id
        self.round = round
        self.position = position
        self.table_id = table_id
        self.team1_id = team1_id
        self.team2_id = team2_id
        self.winner_id = winner_id

    @property
    def is_active(self) -> bool:
        """Both teams known and no winner yet."""
        return bool(self.team1_id and self.team2_id and not self.winner_id)

    @property
    def is_complete(self) -> bool:
        return self.winner_id is not None

    @property
    def is_bye(self) -> bool:
        """The auto-advanced bye slot of the bye-determination round."""
        return self.id.startswith(BYE_MATCH_PREFIX) and self.team2_id is None

    def to_dict(self) -> dict:
        data = {'id': self.id, 'position': self.position, 'tableId': self.table_id}
        if self.team1_id is not None:
            data['team1Id'] = self.team1_id
        if self.team2_id is not None:
            data['team2Id'] = self.team2_id
        if self.winner_id is not None:
            data['winnerId'] = self.winner_id
        return data

    @classmethod
    def from_dict(cls, data: dict, round_number: int) -> 'Match':
        return cls(
            id=str(data['id']),
            round=round_number,
            position=int(data['position']),
            table_id=int(data.get('tableId') or 1),
            team1_id=data.get('team1Id'),
            team2_id=data.get('team2Id'),
            winner_id=data.get('winnerId'),
        )

    def __eq__(self, other):
        if not isinstance(other, Match):
            return NotImplemented
        return self.to_dict() == other.to_dict() and self.round == other.round

    def __repr__(self):
        return (f"Match(id={self.id}, team1={self.team1_id}, team2={self.team2_id}, "
                f"winner={self.winner_id}, table={self.table_id})")


class Round:
    def __init__(self, number: int, matches: Optional[List[Match]] = None):
        self.number = number
        self.matches = matches if matches else []

    @property
    def is_decided(self) -> bool:
        return all(m.is_complete for m in self.matches)

    def to_dict(self) -> dict:
        return {'round': self.number, 'matches': [m.to_dict() for m in self.matches]}

    @classmethod
    def from_dict(cls, data: dict) -> 'Round':
        number = int(data['round'])
        matches = data['matches']
        if not isinstance(matches, list):
            raise ValueError(f"Round {number} matches must be a list")
        parsed = sorted((Match.from_dict(m, number) for m in matches), key=lambda m: m.position)
        return cls(number, parsed)

    def __eq__(self, other):
        if not isinstance(other, Round):
            return NotImplemented
        return self.number == other.number and self.matches == other.matches

    def __repr__(self):
        return f"Round(number={self.number}, matches={len(self.matches)})"


class Bracket:
    """Ordered rounds of a single-elimination tree with round and match-id indexes."""

    def __init__(self, rounds: Optional[List[Round]] = None):
        self.rounds = rounds if rounds else []
        self._rounds_by_number: Dict[int, int] = {}
        self._matches_by_id: Dict[str, Match] = {}
        for index, rnd in enumerate(self.rounds):
            self._rounds_by_number[rnd.number] = index
            for match in rnd.matches:
                self._matches_by_id[match.id] = match

    @property
    def is_empty(self) -> bool:
        return not self.rounds

    @property
    def final(self) -> Optional[Round]:
        return self.rounds[-1] if self.rounds else None

    @property
    def has_bye_round(self) -> bool:
        first = self.rounds[0] if self.rounds else None
        return bool(first and first.number == 0 and any(m.is_bye for m in first.matches))

    def get_round(self, number: int) -> Optional[Round]:
        index = self._rounds_by_number.get(number)
        return self.rounds[index] if index is not None else None

    def round_index(self, number: int) -> Optional[int]:
        return self._rounds_by_number.get(number)

    def next_round(self, number: int) -> Optional[Round]:
        return self.get_round(number + 1)

    def get_match(self, match_id: str) -> Optional[Match]:
        return self._matches_by_id.get(match_id)

    def match_at(self, round_number: int, position: int) -> Optional[Match]:
        rnd = self.get_round(round_number)
        if rnd is None or not 0 <= position < len(rnd.matches):
            return None
        return rnd.matches[position]

    def iter_matches(self):
        for rnd in self.rounds:
            yield from rnd.matches

    def to_dict(self) -> dict:
        return {'rounds': [r.to_dict() for r in self.rounds]}

    @classmethod
    def from_dict(cls, data: dict) -> 'Bracket':
        """Rebuild a bracket from its storage document; raises on malformed input."""
        if not isinstance(data, dict) or not isinstance(data.get('rounds'), list):
            raise ValueError("Bracket document must contain a 'rounds' list")
        rounds = sorted((Round.from_dict(r) for r in data['rounds']), key=lambda r: r.number)
        return cls(rounds)

    def __eq__(self, other):
        if not isinstance(other, Bracket):
            return NotImplemented
        return self.rounds == other.rounds

    def __repr__(self):
        return f"Bracket(rounds={len(self.rounds)})"
