"""Storage collaborator protocol shared by all ledger backends."""

from enum import StrEnum
from typing import Any, Generic, Protocol, TypeVar

from pydantic import BaseModel

from src.domain.reward import Reward
from src.domain.task import Task
from src.domain.update_models import RewardUpdate, TaskUpdate


T = TypeVar("T")


class LoadStatus(StrEnum):
    """Outcome of a read against the storage collaborator."""

    FOUND = "found"
    EMPTY = "empty"
    MISSING = "missing"


class LoadResult(BaseModel, Generic[T]):
    """Typed read result.

    MISSING means the underlying table or collection does not exist, which is
    different from EMPTY (the resource exists but holds no data for the owner).
    """

    status: LoadStatus
    value: T | None = None
    resource: str = ""

    @classmethod
    def found(cls, value: T, *, resource: str = "") -> "LoadResult[T]":
        """Build a FOUND result."""
        return cls(status=LoadStatus.FOUND, value=value, resource=resource)

    @classmethod
    def empty(cls, *, resource: str = "") -> "LoadResult[T]":
        """Build an EMPTY result."""
        return cls(status=LoadStatus.EMPTY, resource=resource)

    @classmethod
    def missing(cls, *, resource: str = "") -> "LoadResult[T]":
        """Build a MISSING result."""
        return cls(status=LoadStatus.MISSING, resource=resource)

    @classmethod
    def of(cls, value: Any, *, resource: str = "") -> "LoadResult[T]":
        """FOUND for a non-empty value, EMPTY for an empty collection or None."""
        if value is None or value == []:
            return cls.empty(resource=resource)
        return cls.found(value, resource=resource)

    @property
    def is_missing(self) -> bool:
        """True when the underlying resource does not exist."""
        return self.status == LoadStatus.MISSING


class LedgerStore(Protocol):
    """Persistence contract required by the ledger.

    Reads return a LoadResult. Writes raise BackendUnavailableError when the
    resource is missing and TransientStorageError for any other failure.
    """

    async def load_tasks(self, owner_id: str) -> LoadResult[list[Task]]:
        """Load every task of an owner in creation order."""
        ...

    async def load_rewards(self, owner_id: str) -> LoadResult[list[Reward]]:
        """Load every reward of an owner in creation order."""
        ...

    async def load_points(self, owner_id: str) -> LoadResult[int]:
        """Load the owner's point balance."""
        ...

    async def save_task(self, owner_id: str, task: Task) -> Task:
        """Persist a new task."""
        ...

    async def update_task(self, owner_id: str, task_id: str, update: TaskUpdate) -> Task:
        """Apply a partial update to a stored task."""
        ...

    async def save_reward(self, owner_id: str, reward: Reward) -> Reward:
        """Persist a new reward."""
        ...

    async def update_reward(self, owner_id: str, reward_id: str, update: RewardUpdate) -> Reward:
        """Apply a partial update to a stored reward."""
        ...

    async def save_points(self, owner_id: str, points: int) -> None:
        """Persist the owner's point balance."""
        ...
