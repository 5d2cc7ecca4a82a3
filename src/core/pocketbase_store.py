"""Hosted ledger storage on PocketBase, reached through the PocketBase SDK.

The SDK is synchronous, so every call runs in a worker thread. A 404 from a
list or create request means the collection itself does not exist; a filter that
matches nothing returns an empty page instead. A 404 on update is an unknown record.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from pocketbase import PocketBase
from pocketbase.client import ClientResponseError

from src.core.db_client import sanitize_param
from src.core.errors import BackendUnavailableError, NotFoundError, TransientStorageError
from src.core.storage import LoadResult
from src.domain.reward import Reward
from src.domain.task import Task
from src.domain.timestamps import format_timestamp
from src.domain.update_models import RewardUpdate, TaskUpdate


logger = logging.getLogger(__name__)

# HTTP status codes
HTTP_NOT_FOUND = 404

R = TypeVar("R")


def _record_to_dict(record: Any) -> dict[str, Any]:
    return dict(record.__dict__)


def _update_payload(update: TaskUpdate | RewardUpdate) -> dict[str, Any]:
    payload = update.model_dump(exclude_unset=True)
    if "last_completed" in payload:
        value = payload["last_completed"]
        payload["last_completed"] = format_timestamp(value) if value is not None else ""
    if payload.get("next_due") is not None:
        payload["next_due"] = format_timestamp(payload["next_due"])
    return payload


def _task_from_record(record: Any) -> Task:
    data = _record_to_dict(record)
    # PocketBase returns "" for unset text fields
    if not data.get("last_completed"):
        data["last_completed"] = None
    return Task.model_validate(data)


class PocketBaseLedgerStore:
    """LedgerStore implementation over the tasks, rewards and profiles collections."""

    def __init__(self, client: PocketBase) -> None:
        self._client = client

    async def _call(self, collection: str, operation: str, func: Callable[[], R]) -> R:
        """Run a blocking SDK call and translate its errors."""
        try:
            return await asyncio.to_thread(func)
        except ClientResponseError as e:
            if e.status == HTTP_NOT_FOUND and operation in {"list", "create"}:
                logger.error("Collection not found", extra={"collection": collection})
                msg = f"Collection '{collection}' does not exist. Run the schema sync first."
                raise BackendUnavailableError(msg) from e
            if e.status == HTTP_NOT_FOUND:
                msg = f"Record not found in {collection}"
                raise NotFoundError(msg) from e
            logger.error(f"pocketbase_{operation}_failed", extra={"collection": collection, "error": str(e)})
            msg = f"Failed to {operation} records in {collection}: {e}"
            raise TransientStorageError(msg) from e

    async def _list(self, collection: str, owner_id: str) -> list[Any]:
        filter_query = f'owner = "{sanitize_param(owner_id)}"'
        return await self._call(
            collection,
            "list",
            lambda: self._client.collection(collection).get_full_list(
                query_params={"filter": filter_query, "sort": "+created"}
            ),
        )

    async def _find_profile(self, owner_id: str) -> Any | None:
        filter_query = f'owner = "{sanitize_param(owner_id)}"'
        page = await self._call(
            "profiles",
            "list",
            lambda: self._client.collection("profiles").get_list(1, 1, {"filter": filter_query}),
        )
        return page.items[0] if page.items else None

    async def load_tasks(self, owner_id: str) -> LoadResult[list[Task]]:
        """Load tasks sorted by creation time."""
        try:
            records = await self._list("tasks", owner_id)
        except BackendUnavailableError:
            return LoadResult.missing(resource="tasks")
        return LoadResult.of([_task_from_record(r) for r in records], resource="tasks")

    async def load_rewards(self, owner_id: str) -> LoadResult[list[Reward]]:
        """Load rewards sorted by creation time."""
        try:
            records = await self._list("rewards", owner_id)
        except BackendUnavailableError:
            return LoadResult.missing(resource="rewards")
        return LoadResult.of([Reward.model_validate(_record_to_dict(r)) for r in records], resource="rewards")

    async def load_points(self, owner_id: str) -> LoadResult[int]:
        """Load the balance stored on the owner's profile record."""
        try:
            profile = await self._find_profile(owner_id)
        except BackendUnavailableError:
            return LoadResult.missing(resource="profiles")
        if profile is None:
            return LoadResult.empty(resource="profiles")
        return LoadResult.found(int(getattr(profile, "total_points", 0) or 0), resource="profiles")

    async def save_task(self, owner_id: str, task: Task) -> Task:
        """Create a task record using the ledger-assigned id."""
        body = {**task.model_dump(mode="json"), "owner": owner_id}
        body["last_completed"] = body["last_completed"] or ""
        record = await self._call("tasks", "create", lambda: self._client.collection("tasks").create(body))
        logger.info("Created record", extra={"collection": "tasks", "record_id": task.id})
        return _task_from_record(record)

    async def update_task(self, owner_id: str, task_id: str, update: TaskUpdate) -> Task:
        """Patch a task record."""
        payload = _update_payload(update)
        record = await self._call(
            "tasks", "update", lambda: self._client.collection("tasks").update(task_id, payload)
        )
        return _task_from_record(record)

    async def save_reward(self, owner_id: str, reward: Reward) -> Reward:
        """Create a reward record using the ledger-assigned id."""
        body = {**reward.model_dump(mode="json"), "owner": owner_id}
        record = await self._call("rewards", "create", lambda: self._client.collection("rewards").create(body))
        logger.info("Created record", extra={"collection": "rewards", "record_id": reward.id})
        return Reward.model_validate(_record_to_dict(record))

    async def update_reward(self, owner_id: str, reward_id: str, update: RewardUpdate) -> Reward:
        """Patch a reward record."""
        payload = _update_payload(update)
        record = await self._call(
            "rewards", "update", lambda: self._client.collection("rewards").update(reward_id, payload)
        )
        return Reward.model_validate(_record_to_dict(record))

    async def save_points(self, owner_id: str, points: int) -> None:
        """Create or update the owner's profile record."""
        profile = await self._find_profile(owner_id)
        if profile is None:
            body = {"owner": owner_id, "total_points": points}
            await self._call("profiles", "create", lambda: self._client.collection("profiles").create(body))
        else:
            await self._call(
                "profiles",
                "update",
                lambda: self._client.collection("profiles").update(profile.id, {"total_points": points}),
            )
        logger.info("Saved points", extra={"owner_id": owner_id, "points": points})
