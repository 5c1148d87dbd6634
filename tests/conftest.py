"""
Shared pytest fixtures for table bracket tests.

Running tests:
    pytest tests/
"""
import pytest
import sys
import os

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from tablebracket.service import TournamentService
from tablebracket.storage import MemoryStore, YamlStore


@pytest.fixture
def memory_service():
    """Service over an in-memory store."""
    return TournamentService(MemoryStore())


@pytest.fixture
def yaml_service(tmp_path):
    """Service over a YAML store in a temporary directory."""
    return TournamentService(YamlStore(str(tmp_path / 'data')))


@pytest.fixture
def roster(memory_service):
    """Five registered teams; returns their ids in registration order."""
    ids = []
    for i in range(1, 6):
        team = memory_service.create_team({
            'name': f'Team {i}',
            'player1': f'Player {i}a',
            'player2': f'Player {i}b',
        })
        ids.append(team.id)
    return ids


@pytest.fixture
def client(tmp_path):
    """Flask test client on a temporary data directory."""
    from app import app
    app.config['TESTING'] = True
    app.config['DATA_DIR'] = str(tmp_path / 'data')
    with app.test_client() as client:
        yield client
