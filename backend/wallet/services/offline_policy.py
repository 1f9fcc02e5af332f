from enum import Enum

from wallet.core.errors import OfflineError
from wallet.services.connectivity import ConnectivityMonitor


class Operation(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class OfflinePolicy(str, Enum):
    QUEUE = "queue"
    REJECT = "reject"


OFFLINE_POLICIES: dict[Operation, OfflinePolicy] = {
    Operation.CREATE: OfflinePolicy.QUEUE,
    Operation.UPDATE: OfflinePolicy.REJECT,
    Operation.DELETE: OfflinePolicy.REJECT,
}


def offline_policy_for(operation: Operation) -> OfflinePolicy:
    return OFFLINE_POLICIES[operation]


def can_queue_offline(operation: Operation) -> bool:
    return offline_policy_for(operation) == OfflinePolicy.QUEUE


def ensure_online(operation: Operation, connectivity: ConnectivityMonitor) -> None:
    if connectivity.is_online:
        return
    if offline_policy_for(operation) == OfflinePolicy.REJECT:
        raise OfflineError(f"Cannot {operation.value} expense while offline.")
