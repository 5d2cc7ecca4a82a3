"""Local-only ledger storage backed by a per-owner JSON document.

The document mirrors the browser local-storage layout: three keys, ``tasks``,
``rewards`` and ``totalPoints``. Task timestamps use camelCase keys and
ISO 8601 strings so files written by the web client load unchanged.
"""

import asyncio
import json
import logging
import os
import re
import threading
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from src.core.config import settings
from src.core.errors import NotFoundError, TransientStorageError
from src.core.storage import LoadResult
from src.domain.reward import Reward
from src.domain.task import Task
from src.domain.update_models import RewardUpdate, TaskUpdate


logger = logging.getLogger(__name__)

TASKS_KEY = "tasks"
REWARDS_KEY = "rewards"
POINTS_KEY = "totalPoints"

# Guards the read-modify-write of each owner document across worker threads
_document_locks: dict[Path, threading.Lock] = {}
_document_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    with _document_locks_guard:
        return _document_locks.setdefault(path.resolve(), threading.Lock())


def _validate_owner_id(owner_id: str) -> None:
    """Owner IDs become file names, so only allow a safe character set."""
    if not re.match(r"^[A-Za-z0-9_-]+$", owner_id):
        msg = f"Invalid owner id: {owner_id!r}"
        raise ValueError(msg)


class LocalJsonStore:
    """LedgerStore implementation writing one JSON file per owner."""

    def __init__(self, directory: str | Path | None = None) -> None:
        self._directory = Path(directory or settings.local_store_dir)

    def path_for(self, owner_id: str) -> Path:
        """Return the document path of an owner."""
        _validate_owner_id(owner_id)
        return self._directory / f"{owner_id}.json"

    def _read_document(self, owner_id: str) -> dict[str, Any]:
        path = self.path_for(owner_id)
        if not path.exists():
            return {}
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error("local_store_read_failed", extra={"path": str(path), "error": str(e)})
            msg = f"Failed to read local ledger {path.name}: {e}"
            raise TransientStorageError(msg) from e
        if not isinstance(document, dict):
            msg = f"Local ledger {path.name} is not a JSON object"
            raise TransientStorageError(msg)
        return document

    def _write_document(self, owner_id: str, document: dict[str, Any]) -> None:
        path = self.path_for(owner_id)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(document, indent=2), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            logger.error("local_store_write_failed", extra={"path": str(path), "error": str(e)})
            msg = f"Failed to write local ledger {path.name}: {e}"
            raise TransientStorageError(msg) from e

    def _load_sync(self, owner_id: str, key: str) -> Any:
        return self._read_document(owner_id).get(key)

    def _mutate_sync(self, owner_id: str, key: str, mutate: Any) -> Any:
        """Read the document, apply `mutate` to the value under `key`, write it back."""
        with _lock_for(self.path_for(owner_id)):
            document = self._read_document(owner_id)
            document[key], result = mutate(document.get(key))
            self._write_document(owner_id, document)
        return result

    async def load_tasks(self, owner_id: str) -> LoadResult[list[Task]]:
        """Load tasks in stored order."""
        raw = await asyncio.to_thread(self._load_sync, owner_id, TASKS_KEY)
        try:
            tasks = [Task.model_validate(item) for item in raw or []]
        except ValidationError as e:
            msg = f"Stored tasks are malformed: {e}"
            raise TransientStorageError(msg) from e
        return LoadResult.of(tasks, resource=TASKS_KEY)

    async def load_rewards(self, owner_id: str) -> LoadResult[list[Reward]]:
        """Load rewards in stored order."""
        raw = await asyncio.to_thread(self._load_sync, owner_id, REWARDS_KEY)
        try:
            rewards = [Reward.model_validate(item) for item in raw or []]
        except ValidationError as e:
            msg = f"Stored rewards are malformed: {e}"
            raise TransientStorageError(msg) from e
        return LoadResult.of(rewards, resource=REWARDS_KEY)

    async def load_points(self, owner_id: str) -> LoadResult[int]:
        """Load the point balance; stored as a plain integer (or its string form)."""
        raw = await asyncio.to_thread(self._load_sync, owner_id, POINTS_KEY)
        if raw is None:
            return LoadResult.empty(resource=POINTS_KEY)
        try:
            return LoadResult.found(int(raw), resource=POINTS_KEY)
        except (TypeError, ValueError) as e:
            msg = f"Stored point balance is not an integer: {raw!r}"
            raise TransientStorageError(msg) from e

    async def save_task(self, owner_id: str, task: Task) -> Task:
        """Append a task to the stored collection."""

        def append(items: list | None) -> tuple[list, Task]:
            return [*(items or []), task.model_dump(mode="json", by_alias=True)], task

        await asyncio.to_thread(self._mutate_sync, owner_id, TASKS_KEY, append)
        logger.info("Saved task", extra={"owner_id": owner_id, "task_id": task.id})
        return task

    async def update_task(self, owner_id: str, task_id: str, update: TaskUpdate) -> Task:
        """Apply a partial update to one stored task."""

        def apply(items: list | None) -> tuple[list, Task]:
            items = list(items or [])
            for index, item in enumerate(items):
                if item.get("id") == task_id:
                    merged = Task.model_validate(item).model_copy(update=update.model_dump(exclude_unset=True))
                    items[index] = merged.model_dump(mode="json", by_alias=True)
                    return items, merged
            msg = f"Task not found: {task_id}"
            raise NotFoundError(msg)

        task = await asyncio.to_thread(self._mutate_sync, owner_id, TASKS_KEY, apply)
        logger.info("Updated task", extra={"owner_id": owner_id, "task_id": task_id})
        return task

    async def save_reward(self, owner_id: str, reward: Reward) -> Reward:
        """Append a reward to the stored collection."""

        def append(items: list | None) -> tuple[list, Reward]:
            return [*(items or []), reward.model_dump(mode="json")], reward

        await asyncio.to_thread(self._mutate_sync, owner_id, REWARDS_KEY, append)
        logger.info("Saved reward", extra={"owner_id": owner_id, "reward_id": reward.id})
        return reward

    async def update_reward(self, owner_id: str, reward_id: str, update: RewardUpdate) -> Reward:
        """Apply a partial update to one stored reward."""

        def apply(items: list | None) -> tuple[list, Reward]:
            items = list(items or [])
            for index, item in enumerate(items):
                if item.get("id") == reward_id:
                    merged = Reward.model_validate(item).model_copy(update=update.model_dump(exclude_unset=True))
                    items[index] = merged.model_dump(mode="json")
                    return items, merged
            msg = f"Reward not found: {reward_id}"
            raise NotFoundError(msg)

        reward = await asyncio.to_thread(self._mutate_sync, owner_id, REWARDS_KEY, apply)
        logger.info("Updated reward", extra={"owner_id": owner_id, "reward_id": reward_id})
        return reward

    async def save_points(self, owner_id: str, points: int) -> None:
        """Overwrite the stored point balance."""
        await asyncio.to_thread(self._mutate_sync, owner_id, POINTS_KEY, lambda _old: (points, None))
        logger.info("Saved points", extra={"owner_id": owner_id, "points": points})
