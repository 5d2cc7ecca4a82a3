"""Domain models and DTOs."""

from src.domain.create_models import RewardCreate, SignInRequest, SignUpRequest, TaskCreate
from src.domain.reward import Reward
from src.domain.task import FREQUENCY_LABELS, Frequency, Task
from src.domain.update_models import RewardUpdate, TaskUpdate
from src.domain.user import Identity


__all__ = [
    "FREQUENCY_LABELS",
    "Frequency",
    "Identity",
    "Reward",
    "RewardCreate",
    "RewardUpdate",
    "SignInRequest",
    "SignUpRequest",
    "Task",
    "TaskCreate",
    "TaskUpdate",
]
