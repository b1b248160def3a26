"""Key-value storage for room blobs.

A store holds one ``RoomData`` blob per room id with whole-blob get/put
semantics; there are no partial-field updates. Two implementations:

    - InMemoryRoomStore: process-local dict, used by default and in tests.
    - DuckDBRoomStore: embedded DuckDB file, one JSON row per room.

Thread Safety:
    Neither store is thread-safe. All access goes through ``RoomService``,
    which serializes operations per room on a single event loop.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Optional

import duckdb

from .schemas import RoomData

logger = logging.getLogger(__name__)


class RoomStore(ABC):
    """Abstract get/put store for room blobs."""

    @abstractmethod
    def get(self, room_id: str) -> Optional[RoomData]:
        """Return a copy of the stored room, or None if it does not exist."""
        pass

    @abstractmethod
    def put(self, room: RoomData) -> None:
        """Store ``room``, replacing any previous blob for its id."""
        pass

    @abstractmethod
    def delete(self, room_id: str) -> bool:
        """Remove a room. Returns True if it existed."""
        pass

    def exists(self, room_id: str) -> bool:
        return self.get(room_id) is not None

    def close(self) -> None:
        """Release any underlying resources."""


class InMemoryRoomStore(RoomStore):
    """Dict-backed store. Returns deep copies so callers cannot alias state."""

    def __init__(self) -> None:
        self._rooms: Dict[str, RoomData] = {}

    def get(self, room_id: str) -> Optional[RoomData]:
        room = self._rooms.get(room_id)
        return room.model_copy(deep=True) if room is not None else None

    def put(self, room: RoomData) -> None:
        self._rooms[room.roomId] = room.model_copy(deep=True)

    def delete(self, room_id: str) -> bool:
        return self._rooms.pop(room_id, None) is not None

    def exists(self, room_id: str) -> bool:
        return room_id in self._rooms

    def clear(self) -> None:
        self._rooms.clear()


_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS rooms (
    room_id    VARCHAR PRIMARY KEY,
    data       VARCHAR NOT NULL,
    updated_at TIMESTAMP NOT NULL
)
"""


class DuckDBRoomStore(RoomStore):
    """DuckDB-backed store keeping each room as a JSON document.

    Attributes:
        _db_path: Path to the DuckDB database file (``:memory:`` allowed).
    """

    _default_db_path: str = "rooms.duckdb"

    def __init__(self, db_path: Optional[str] = None) -> None:
        self._db_path = db_path or self._default_db_path
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._get_connection().execute(_CREATE_TABLE)
        logger.info("[DuckDBRoomStore] Initialized with db=%s", self._db_path)

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        if self._connection is None:
            self._connection = duckdb.connect(self._db_path)
        return self._connection

    def get(self, room_id: str) -> Optional[RoomData]:
        row = self._get_connection().execute(
            "SELECT data FROM rooms WHERE room_id = ?", [room_id]
        ).fetchone()
        if row is None:
            return None
        return RoomData.model_validate_json(row[0])

    def put(self, room: RoomData) -> None:
        self._get_connection().execute(
            "INSERT OR REPLACE INTO rooms (room_id, data, updated_at) VALUES (?, ?, ?)",
            [room.roomId, room.model_dump_json(), datetime.utcnow()],
        )

    def delete(self, room_id: str) -> bool:
        result = self._get_connection().execute(
            "DELETE FROM rooms WHERE room_id = ? RETURNING room_id", [room_id]
        ).fetchone()
        return result is not None

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
