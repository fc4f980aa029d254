"""Cache key builders. Single place for key format."""

CACHE_KEY_SEP = ":"
CACHE_PREFIX_TASK = "task"
CACHE_PREFIX_TASK_LIST = "tasks"


def task_key(task_id: int) -> str:
    """Cache key for a single task by id."""
    return f"{CACHE_PREFIX_TASK}{CACHE_KEY_SEP}{task_id}"


def task_list_key(query: str) -> str:
    """Cache key for a task listing identified by its serialized query."""
    return f"{CACHE_PREFIX_TASK_LIST}{CACHE_KEY_SEP}list{CACHE_KEY_SEP}{query or 'all'}"


def task_list_pattern() -> str:
    """Glob matching every task listing key."""
    return f"{CACHE_PREFIX_TASK_LIST}{CACHE_KEY_SEP}*"
