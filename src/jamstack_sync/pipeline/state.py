"""JSON-file persistence for per-item sync state.

Each item's SyncState lives in its own file, <state_dir>/<item_id>.json.
Status values are written as their string form and read back into the
SyncStatus enum.
"""

import json
import logging
import os
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from schemas.sync_state import SyncState

logger: logging.Logger = logging.getLogger(__name__)


def load_state(state_file: Path) -> SyncState:
    """Load a sync state from a JSON file.

    Args:
        state_file: Path to the JSON state file

    Returns:
        The loaded state
    """
    with state_file.open("r") as f:
        return SyncState.model_validate(json.load(f))


def dump_state(state: SyncState, destination: Path) -> None:
    """Save a sync state to a JSON file.

    The file is written beside its destination and renamed into place so
    readers never observe a partial document.

    Args:
        state: The state to save
        destination: Path where the state file should be written
    """
    scratch = destination.with_suffix(f".{os.getpid()}.tmp")
    with scratch.open("w") as f:
        json.dump(state.model_dump(mode="json"), fp=f, indent=2)
    scratch.replace(destination)


class StateStore:
    """Directory of per-item sync state documents.

    Attributes:
        state_dir: Directory holding one JSON file per item
    """

    def __init__(self, state_dir: Path):
        self.state_dir = state_dir
        self.state_dir.mkdir(parents=True, exist_ok=True)

    def __repr__(self) -> str:
        return f"StateStore('{self.state_dir}')"

    def path_for(self, item_id: int) -> Path:
        return self.state_dir / f"{item_id}.json"

    def get(self, item_id: int) -> SyncState:
        """Return the item's state; items never seen before are UNKNOWN."""
        path = self.path_for(item_id)
        if not path.exists():
            return SyncState(item_id=item_id)

        try:
            return load_state(path)
        except (json.JSONDecodeError, PydanticValidationError) as e:
            logger.error(f"Unreadable state file {path}, treating as unknown: {e}")
            return SyncState(item_id=item_id)

    def save(self, state: SyncState) -> None:
        dump_state(state, self.path_for(state.item_id))

    def all(self) -> list[SyncState]:
        """Return the state of every item that has one, ordered by item id."""
        states = []
        for path in self.state_dir.glob("*.json"):
            try:
                states.append(load_state(path))
            except (json.JSONDecodeError, PydanticValidationError) as e:
                logger.error(f"Skipping unreadable state file {path}: {e}")
        return sorted(states, key=lambda s: s.item_id)
