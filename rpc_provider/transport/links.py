"""Operation model and link chain primitives."""

import itertools
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

OPERATION_TYPES = ("query", "mutation", "subscription")

_operation_ids = itertools.count(1)


@dataclass
class Operation:
    """A single procedure call travelling through the link chain."""

    type: str
    path: str
    input: Any = None
    context: Dict[str, Any] = field(default_factory=dict)
    id: int = field(default_factory=lambda: next(_operation_ids))

    def __post_init__(self):
        if self.type not in OPERATION_TYPES:
            raise ValueError(f"Unknown operation type: {self.type}")


Forward = Callable[[Operation], Awaitable[Any]]


class Link:
    """
    Base class for links.

    A link receives each operation together with ``forward``, which passes the
    operation on to the next link. A terminating link never calls ``forward``.
    """

    async def request(self, op: Operation, forward: Optional[Forward] = None) -> Any:
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release resources held by the link."""
