"""Relational ledger storage on SQLite via db_client."""

import logging
from datetime import datetime
from typing import Any

from src.core import db_client
from src.core.db_client import sanitize_param
from src.core.errors import BackendUnavailableError
from src.core.storage import LoadResult
from src.domain.reward import Reward
from src.domain.task import Task
from src.domain.timestamps import format_timestamp
from src.domain.update_models import RewardUpdate, TaskUpdate


logger = logging.getLogger(__name__)


def _task_from_row(row: dict[str, Any]) -> Task:
    return Task.model_validate({**row, "completed": bool(row["completed"])})


def _reward_from_row(row: dict[str, Any]) -> Reward:
    return Reward.model_validate({**row, "claimed": bool(row["claimed"])})


def _update_payload(update: TaskUpdate | RewardUpdate) -> dict[str, Any]:
    payload = update.model_dump(exclude_unset=True)
    for key, value in payload.items():
        if isinstance(value, datetime):
            payload[key] = format_timestamp(value)
    return payload


class SqliteLedgerStore:
    """LedgerStore implementation over the tasks, rewards and profiles tables."""

    def __init__(self, db_path: str | None = None) -> None:
        self._db_path = db_path

    async def _list(self, collection: str, owner_id: str) -> list[dict[str, Any]] | None:
        """List an owner's rows, or None when the table does not exist."""
        try:
            return await db_client.list_records(
                collection=collection,
                filter_query=f'owner = "{sanitize_param(owner_id)}"',
                db_path=self._db_path,
            )
        except BackendUnavailableError:
            return None

    async def load_tasks(self, owner_id: str) -> LoadResult[list[Task]]:
        """Load tasks in insertion order."""
        rows = await self._list("tasks", owner_id)
        if rows is None:
            return LoadResult.missing(resource="tasks")
        return LoadResult.of([_task_from_row(row) for row in rows], resource="tasks")

    async def load_rewards(self, owner_id: str) -> LoadResult[list[Reward]]:
        """Load rewards in insertion order."""
        rows = await self._list("rewards", owner_id)
        if rows is None:
            return LoadResult.missing(resource="rewards")
        return LoadResult.of([_reward_from_row(row) for row in rows], resource="rewards")

    async def load_points(self, owner_id: str) -> LoadResult[int]:
        """Load the owner's profile balance."""
        try:
            profile = await db_client.get_first_record(
                collection="profiles",
                filter_query=f'id = "{sanitize_param(owner_id)}"',
                db_path=self._db_path,
            )
        except BackendUnavailableError:
            return LoadResult.missing(resource="profiles")
        if profile is None:
            return LoadResult.empty(resource="profiles")
        return LoadResult.found(int(profile["total_points"]), resource="profiles")

    async def save_task(self, owner_id: str, task: Task) -> Task:
        """Insert a task row."""
        data = {**task.model_dump(mode="json"), "owner": owner_id, "completed": int(task.completed)}
        row = await db_client.create_record(collection="tasks", data=data, db_path=self._db_path)
        return _task_from_row(row)

    async def update_task(self, owner_id: str, task_id: str, update: TaskUpdate) -> Task:
        """Update a task row."""
        row = await db_client.update_record(
            collection="tasks", record_id=task_id, data=_update_payload(update), db_path=self._db_path
        )
        return _task_from_row(row)

    async def save_reward(self, owner_id: str, reward: Reward) -> Reward:
        """Insert a reward row."""
        data = {**reward.model_dump(mode="json"), "owner": owner_id, "claimed": int(reward.claimed)}
        row = await db_client.create_record(collection="rewards", data=data, db_path=self._db_path)
        return _reward_from_row(row)

    async def update_reward(self, owner_id: str, reward_id: str, update: RewardUpdate) -> Reward:
        """Update a reward row."""
        row = await db_client.update_record(
            collection="rewards", record_id=reward_id, data=_update_payload(update), db_path=self._db_path
        )
        return _reward_from_row(row)

    async def save_points(self, owner_id: str, points: int) -> None:
        """Upsert the owner's profile balance."""
        profile = await db_client.get_first_record(
            collection="profiles",
            filter_query=f'id = "{sanitize_param(owner_id)}"',
            db_path=self._db_path,
        )
        if profile is None:
            await db_client.create_record(
                collection="profiles", data={"id": owner_id, "total_points": points}, db_path=self._db_path
            )
        else:
            await db_client.update_record(
                collection="profiles", record_id=owner_id, data={"total_points": points}, db_path=self._db_path
            )
        logger.info("Saved points", extra={"owner_id": owner_id, "points": points})
