"""Core constants shared by the domain model, persistence and schemas.

Single source of truth for column limits that are also validated on input.
"""

# tasks.title column width; template names longer than this are truncated
# when instantiated into a task.
TASK_TITLE_MAX_LENGTH = 56

# Priority scale for tasks and task templates (1 = highest).
PRIORITY_MIN = 1
PRIORITY_MAX = 5
DEFAULT_PRIORITY = 3

# Default page size for ledger listings.
DEFAULT_PAGE_SIZE = 50
