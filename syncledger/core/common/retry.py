import logging
from typing import Callable, TypeVar

from syncledger.core.common.errors import StorageConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_once_on_conflict(operation: Callable[[], T], *, operation_name: str) -> T:
    try:
        return operation()
    except StorageConflictError:
        logger.warning("Storage conflict, retrying once. operation=%s", operation_name)
        return operation()
