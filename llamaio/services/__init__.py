from llamaio.services import (
    query_translator,
    reference_sync,
    task_service,
    user_service,
)


__all__ = [
    "query_translator",
    "reference_sync",
    "task_service",
    "user_service",
]
