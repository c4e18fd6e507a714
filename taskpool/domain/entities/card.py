"""Card status derivation.

A card has no stored status; it is derived from its tasks every time it
is read, so it can never drift from them.
"""

from collections.abc import Iterable

from taskpool.domain.enums import CardStatus, TaskStatus


def derive_card_status(task_statuses: Iterable[TaskStatus | str]) -> CardStatus:
    """Return the card status for the given task statuses.

    No tasks or all tasks available -> pendiente; all tasks completed ->
    cerrada; anything else -> en_curso.
    """
    statuses = {TaskStatus(s) for s in task_statuses}
    if not statuses or statuses == {TaskStatus.AVAILABLE}:
        return CardStatus.PENDIENTE
    if statuses == {TaskStatus.COMPLETED}:
        return CardStatus.CERRADA
    return CardStatus.EN_CURSO
