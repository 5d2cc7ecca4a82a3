"""Productivity ledger: tasks, rewards and the points balance of one owner.

Every mutation is applied to the in-memory copy first, then persisted. If the
store rejects any part of it, the in-memory copy is restored, writes that did
succeed are compensated, and the storage error is re-raised after notifying
the user. Success notifications are only sent once persistence has settled.
"""

import logging
from collections.abc import Awaitable

from pydantic import ValidationError

from src.core.config import constants
from src.core.errors import (
    BACKEND_UNAVAILABLE_MESSAGE,
    BACKEND_UNAVAILABLE_SUGGESTION,
    AlreadyClaimedError,
    BackendUnavailableError,
    InsufficientPointsError,
    InvalidInputError,
    NotFoundError,
    first_validation_message,
)
from src.core.logging import log_with_owner_context, span
from src.core.recurrence import calculate_next_due
from src.core.storage import LedgerStore
from src.domain.create_models import RewardCreate, TaskCreate
from src.domain.reward import Reward
from src.domain.task import Frequency, Task
from src.domain.timestamps import utc_now
from src.domain.update_models import RewardUpdate, TaskUpdate
from src.models.service_models import Achievement, LedgerStats
from src.services.notification_service import NotificationSeverity, Notifier


logger = logging.getLogger(__name__)


def completion_rate(*, completed: int, total: int) -> int:
    """Percentage of completed tasks, rounded half up; 0 when there are no tasks."""
    if total == 0:
        return 0
    return (200 * completed + total) // (2 * total)


class Ledger:
    """Authoritative in-memory state of one owner's tasks, rewards and points."""

    def __init__(
        self,
        *,
        owner_id: str,
        store: LedgerStore,
        notifier: Notifier,
        tasks: list[Task] | None = None,
        rewards: list[Reward] | None = None,
        total_points: int = 0,
        backend_warning_sent: bool = False,
    ) -> None:
        self._owner_id = owner_id
        self._store = store
        self._notifier = notifier
        self._tasks: list[Task] = list(tasks or [])
        self._rewards: list[Reward] = list(rewards or [])
        self._total_points = total_points
        self._backend_warning_sent = backend_warning_sent

    @classmethod
    async def load(
        cls, *, owner_id: str, store: LedgerStore, notifier: Notifier, backend_warning_sent: bool = False
    ) -> "Ledger":
        """Create a ledger and populate it from storage.

        Pass `backend_warning_sent` when the caller already told the user that
        storage is uninitialized, so a failed load does not repeat it.

        Raises:
            BackendUnavailableError: If any table/collection does not exist
            TransientStorageError: If a read fails for another reason
        """
        ledger = cls(owner_id=owner_id, store=store, notifier=notifier, backend_warning_sent=backend_warning_sent)
        await ledger.reload()
        return ledger

    async def reload(self) -> None:
        """Replace the in-memory state with what storage holds. State is untouched on failure."""
        with span("ledger_service.reload"):
            try:
                tasks = await self._store.load_tasks(self._owner_id)
                rewards = await self._store.load_rewards(self._owner_id)
                points = await self._store.load_points(self._owner_id)
            except Exception as e:
                self._report_storage_failure(e, action="load your data")
                raise

            missing = [result.resource for result in (tasks, rewards, points) if result.is_missing]
            if missing:
                error = BackendUnavailableError(f"Storage resources do not exist: {', '.join(missing)}")
                self._report_storage_failure(error, action="load your data")
                raise error

            self._tasks = list(tasks.value or [])
            self._rewards = list(rewards.value or [])
            self._total_points = points.value or 0
            self._backend_warning_sent = False
            log_with_owner_context(
                logger,
                "info",
                "Ledger loaded",
                owner_id=self._owner_id,
                tasks=len(self._tasks),
                rewards=len(self._rewards),
                total_points=self._total_points,
            )

    # State accessors

    @property
    def owner_id(self) -> str:
        return self._owner_id

    @property
    def total_points(self) -> int:
        return self._total_points

    @property
    def tasks(self) -> list[Task]:
        """All tasks in insertion order (copies)."""
        return [task.model_copy() for task in self._tasks]

    @property
    def rewards(self) -> list[Reward]:
        """All rewards in insertion order (copies)."""
        return [reward.model_copy() for reward in self._rewards]

    def get_task(self, task_id: str) -> Task:
        """Return a copy of one task.

        Raises:
            NotFoundError: If no task has this id
        """
        return self._find_task(task_id)[1].model_copy()

    def get_reward(self, reward_id: str) -> Reward:
        """Return a copy of one reward.

        Raises:
            NotFoundError: If no reward has this id
        """
        return self._find_reward(reward_id)[1].model_copy()

    def _find_task(self, task_id: str) -> tuple[int, Task]:
        for index, task in enumerate(self._tasks):
            if task.id == task_id:
                return index, task
        msg = f"Task not found: {task_id}"
        raise NotFoundError(msg)

    def _find_reward(self, reward_id: str) -> tuple[int, Reward]:
        for index, reward in enumerate(self._rewards):
            if reward.id == reward_id:
                return index, reward
        msg = f"Reward not found: {reward_id}"
        raise NotFoundError(msg)

    # Operations

    async def create_task(
        self,
        *,
        title: str,
        description: str = "",
        frequency: Frequency | str = Frequency.DAILY,
        points: int = constants.DEFAULT_TASK_POINTS,
    ) -> Task:
        """Create a recurring task due one frequency offset from now.

        Raises:
            InvalidInputError: If the title is blank or points are not positive
            StorageError: If the task could not be persisted
        """
        with span("ledger_service.create_task"):
            try:
                payload = TaskCreate(title=title, description=description, frequency=frequency, points=points)
            except ValidationError as e:
                raise InvalidInputError(first_validation_message(e)) from e

            task = Task(
                title=payload.title,
                description=payload.description,
                frequency=payload.frequency,
                points=payload.points,
                next_due=calculate_next_due(frequency=payload.frequency, from_time=utc_now()),
            )

            self._tasks.append(task)
            try:
                await self._store.save_task(self._owner_id, task)
            except Exception as e:
                self._tasks.remove(task)
                self._report_storage_failure(e, action="create the task")
                raise

            log_with_owner_context(logger, "info", "Task created", owner_id=self._owner_id, task_id=task.id)
            self._notifier.notify("Task added!", "Your new task was created successfully.")
            return task.model_copy()

    async def complete_task(self, task_id: str) -> Task:
        """Mark a task done, credit its points and schedule its next due date.

        Completing an already-completed task is a no-op: nothing is credited,
        persisted or notified, and the task is returned unchanged.

        Raises:
            NotFoundError: If no task has this id
            StorageError: If the completion could not be persisted
        """
        with span("ledger_service.complete_task"):
            index, task = self._find_task(task_id)
            if task.completed:
                logger.info("Task %s already completed, ignoring", task_id)
                return task.model_copy()

            now = utc_now()
            update = TaskUpdate(
                completed=True,
                last_completed=now,
                next_due=calculate_next_due(frequency=task.frequency, from_time=now),
            )
            previous_points = self._total_points

            self._tasks[index] = task.model_copy(update=update.model_dump(exclude_unset=True))
            self._total_points += task.points

            task_saved = False
            try:
                await self._store.update_task(self._owner_id, task_id, update)
                task_saved = True
                await self._store.save_points(self._owner_id, self._total_points)
            except Exception as e:
                self._tasks[index] = task
                self._total_points = previous_points
                if task_saved:
                    await self._compensate(
                        "revert task completion",
                        self._store.update_task(
                            self._owner_id,
                            task_id,
                            TaskUpdate(completed=task.completed, last_completed=task.last_completed, next_due=task.next_due),
                        ),
                    )
                self._report_storage_failure(e, action="complete the task")
                raise

            log_with_owner_context(
                logger,
                "info",
                "Task completed",
                owner_id=self._owner_id,
                task_id=task_id,
                points=task.points,
                total_points=self._total_points,
            )
            self._notifier.notify("Task completed! 🎉", f"You earned {task.points} productivity points!")
            return self._tasks[index].model_copy()

    async def reset_tasks(self) -> None:
        """Mark every task pending again. Due dates, history and points are kept.

        Raises:
            StorageError: If any task could not be persisted
        """
        with span("ledger_service.reset_tasks"):
            snapshot = list(self._tasks)
            self._tasks = [task.model_copy(update={"completed": False}) for task in snapshot]

            # Tasks that are already pending need no write
            reset: list[Task] = []
            try:
                for task in snapshot:
                    if task.completed:
                        await self._store.update_task(self._owner_id, task.id, TaskUpdate(completed=False))
                        reset.append(task)
            except Exception as e:
                self._tasks = snapshot
                for task in reset:
                    await self._compensate(
                        "revert task reset",
                        self._store.update_task(self._owner_id, task.id, TaskUpdate(completed=True)),
                    )
                self._report_storage_failure(e, action="reset your tasks")
                raise

            log_with_owner_context(logger, "info", "Tasks reset", owner_id=self._owner_id, reset=len(reset))

    async def create_reward(
        self,
        *,
        title: str,
        description: str = "",
        cost: int = constants.DEFAULT_REWARD_COST,
    ) -> Reward:
        """Add a reward to the store.

        Raises:
            InvalidInputError: If the title is blank or the cost is not positive
            StorageError: If the reward could not be persisted
        """
        with span("ledger_service.create_reward"):
            try:
                payload = RewardCreate(title=title, description=description, cost=cost)
            except ValidationError as e:
                raise InvalidInputError(first_validation_message(e)) from e

            reward = Reward(title=payload.title, description=payload.description, cost=payload.cost)

            self._rewards.append(reward)
            try:
                await self._store.save_reward(self._owner_id, reward)
            except Exception as e:
                self._rewards.remove(reward)
                self._report_storage_failure(e, action="create the reward")
                raise

            log_with_owner_context(logger, "info", "Reward created", owner_id=self._owner_id, reward_id=reward.id)
            self._notifier.notify("Reward added!", "New reward available in the store.")
            return reward.model_copy()

    async def claim_reward(self, reward_id: str) -> Reward:
        """Redeem a reward, deducting its cost from the balance.

        Raises:
            NotFoundError: If no reward has this id
            AlreadyClaimedError: If the reward was already redeemed
            InsufficientPointsError: If the balance is below the cost
            StorageError: If the redemption could not be persisted
        """
        with span("ledger_service.claim_reward"):
            index, reward = self._find_reward(reward_id)
            if reward.claimed:
                msg = f"Reward already claimed: {reward.title}"
                raise AlreadyClaimedError(msg)
            if self._total_points < reward.cost:
                logger.info(
                    "Rejected claim of %s: cost %d exceeds balance %d", reward_id, reward.cost, self._total_points
                )
                raise InsufficientPointsError(cost=reward.cost, balance=self._total_points)

            previous_points = self._total_points
            self._total_points -= reward.cost
            self._rewards[index] = reward.model_copy(update={"claimed": True})

            points_saved = False
            try:
                await self._store.save_points(self._owner_id, self._total_points)
                points_saved = True
                await self._store.update_reward(self._owner_id, reward_id, RewardUpdate(claimed=True))
            except Exception as e:
                self._rewards[index] = reward
                self._total_points = previous_points
                if points_saved:
                    await self._compensate(
                        "restore point balance", self._store.save_points(self._owner_id, previous_points)
                    )
                self._report_storage_failure(e, action="redeem the reward")
                raise

            log_with_owner_context(
                logger,
                "info",
                "Reward claimed",
                owner_id=self._owner_id,
                reward_id=reward_id,
                cost=reward.cost,
                total_points=self._total_points,
            )
            self._notifier.notify("Reward redeemed! 🎁", f"You redeemed: {reward.title}")
            return self._rewards[index].model_copy()

    # Derived views

    @property
    def pending_tasks(self) -> list[Task]:
        return [task.model_copy() for task in self._tasks if not task.completed]

    @property
    def completed_tasks(self) -> list[Task]:
        return [task.model_copy() for task in self._tasks if task.completed]

    @property
    def available_rewards(self) -> list[Reward]:
        return [reward.model_copy() for reward in self._rewards if not reward.claimed]

    @property
    def claimed_rewards(self) -> list[Reward]:
        return [reward.model_copy() for reward in self._rewards if reward.claimed]

    @property
    def completion_rate(self) -> int:
        """Completed share of all tasks as an integer percentage."""
        completed = sum(1 for task in self._tasks if task.completed)
        return completion_rate(completed=completed, total=len(self._tasks))

    @property
    def achievements(self) -> list[Achievement]:
        """All achievements with their current unlocked state."""
        completed = sum(1 for task in self._tasks if task.completed)
        return [
            Achievement(
                key="first_hundred",
                name="First Hundred",
                description=f"Reach {constants.ACHIEVEMENT_POINTS_THRESHOLD} points",
                unlocked=self._total_points >= constants.ACHIEVEMENT_POINTS_THRESHOLD,
            ),
            Achievement(
                key="dedicated_achiever",
                name="Dedicated Achiever",
                description=f"Complete {constants.ACHIEVEMENT_COMPLETED_THRESHOLD} tasks",
                unlocked=completed >= constants.ACHIEVEMENT_COMPLETED_THRESHOLD,
            ),
            Achievement(
                key="organizer",
                name="Organizer",
                description=f"Create {constants.ACHIEVEMENT_TASKS_THRESHOLD} tasks",
                unlocked=len(self._tasks) >= constants.ACHIEVEMENT_TASKS_THRESHOLD,
            ),
        ]

    def stats(self) -> LedgerStats:
        """Summarize progress for the dashboard."""
        completed = sum(1 for task in self._tasks if task.completed)
        claimed = sum(1 for reward in self._rewards if reward.claimed)
        return LedgerStats(
            total_points=self._total_points,
            total_tasks=len(self._tasks),
            completed_tasks=completed,
            pending_tasks=len(self._tasks) - completed,
            available_rewards=len(self._rewards) - claimed,
            claimed_rewards=claimed,
            completion_rate=completion_rate(completed=completed, total=len(self._tasks)),
            milestone=constants.POINTS_MILESTONE,
            milestone_progress=min(self._total_points / constants.POINTS_MILESTONE * 100, 100.0),
            achievements=self.achievements,
        )

    # Failure handling

    async def _compensate(self, description: str, write: Awaitable[object]) -> None:
        """Undo a write that succeeded before a later write failed."""
        try:
            await write
        except Exception as e:  # noqa: BLE001
            # Storage now diverges from memory until the next successful write or reload
            logger.error(
                "Compensating write failed",
                extra={"owner_id": self._owner_id, "compensation": description, "error": str(e)},
            )

    def _report_storage_failure(self, error: Exception, *, action: str) -> None:
        """Log a storage failure and tell the user about it."""
        if isinstance(error, BackendUnavailableError):
            logger.error("Storage backend not initialized", extra={"owner_id": self._owner_id, "error": str(error)})
            if not self._backend_warning_sent:
                self._backend_warning_sent = True
                self._notifier.notify(
                    BACKEND_UNAVAILABLE_MESSAGE, BACKEND_UNAVAILABLE_SUGGESTION, NotificationSeverity.ERROR
                )
            return

        logger.error(
            "Storage operation failed", extra={"owner_id": self._owner_id, "action": action, "error": str(error)}
        )
        self._notifier.notify("Something went wrong", f"Could not {action}. Please try again.", NotificationSeverity.ERROR)
