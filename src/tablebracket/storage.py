"""
Record storage adapters.

The tournament service talks to a key-value record store through
create/read/update/delete operations; the bracket engine never sees it.
Records are plain dicts keyed by their ``id`` inside named collections.
"""
import copy
import logging
import os
import threading
import uuid
from typing import Dict, List

import yaml
from filelock import FileLock

from tablebracket.errors import RecordNotFoundError

logger = logging.getLogger(__name__)

TEAMS = 'teams'
FREE_AGENTS = 'free_agents'
TOURNAMENTS = 'tournaments'


def new_record_id() -> str:
    return uuid.uuid4().hex


class RecordStore:
    """Interface shared by the storage adapters."""

    def lock(self):
        """Context manager serialising writers of this store."""
        raise NotImplementedError

    def _load(self, collection: str) -> List[dict]:
        raise NotImplementedError

    def _save(self, collection: str, records: List[dict]):
        raise NotImplementedError

    def list(self, collection: str) -> List[dict]:
        return copy.deepcopy(self._load(collection))

    def read(self, collection: str, record_id: str) -> dict:
        for record in self._load(collection):
            if record.get('id') == record_id:
                return copy.deepcopy(record)
        raise RecordNotFoundError(collection, record_id)

    def create(self, collection: str, record: dict) -> dict:
        record = copy.deepcopy(record)
        record.setdefault('id', new_record_id())
        with self.lock():
            records = self._load(collection)
            records.append(record)
            self._save(collection, records)
        return copy.deepcopy(record)

    def update(self, collection: str, record_id: str, changes: dict) -> dict:
        with self.lock():
            records = self._load(collection)
            for record in records:
                if record.get('id') == record_id:
                    record.update(copy.deepcopy(changes))
                    record['id'] = record_id
                    self._save(collection, records)
                    return copy.deepcopy(record)
        raise RecordNotFoundError(collection, record_id)

    def delete(self, collection: str, record_id: str):
        with self.lock():
            records = self._load(collection)
            remaining = [r for r in records if r.get('id') != record_id]
            if len(remaining) == len(records):
                raise RecordNotFoundError(collection, record_id)
            self._save(collection, remaining)

    def clear(self, collection: str):
        with self.lock():
            self._save(collection, [])


class MemoryStore(RecordStore):
    """Dict-backed store for tests and embedding."""

    def __init__(self):
        self._collections: Dict[str, List[dict]] = {}
        self._lock = threading.RLock()

    def lock(self):
        return self._lock

    def _load(self, collection: str) -> List[dict]:
        return copy.deepcopy(self._collections.get(collection, []))

    def _save(self, collection: str, records: List[dict]):
        self._collections[collection] = copy.deepcopy(records)


class YamlStore(RecordStore):
    """
    One YAML file per collection under ``data_dir``.

    Writers hold a file lock on ``<data_dir>/.lock`` so that several
    processes serving the same data directory apply changes one at a time.
    """

    def __init__(self, data_dir: str, lock_timeout: float = 10):
        self.data_dir = data_dir
        os.makedirs(data_dir, exist_ok=True)
        self._lock = FileLock(os.path.join(data_dir, '.lock'), timeout=lock_timeout)

    def lock(self):
        return self._lock

    def path_for(self, collection: str) -> str:
        return os.path.join(self.data_dir, f'{collection}.yaml')

    def _load(self, collection: str) -> List[dict]:
        path = self.path_for(collection)
        if not os.path.exists(path):
            return []
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.warning(f'Failed to parse {path}: {e}')
            return []
        if not data:
            return []
        records = data.get(collection, []) if isinstance(data, dict) else None
        if not isinstance(records, list):
            logger.warning(f'Ignoring {path}: expected a list under "{collection}"')
            return []
        return records

    def _save(self, collection: str, records: List[dict]):
        with open(self.path_for(collection), 'w', encoding='utf-8') as f:
            yaml.dump({collection: records}, f, default_flow_style=False, sort_keys=False)
