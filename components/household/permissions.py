"""Boundary to the household permission collaborator."""

from typing import Dict, Optional, Set

from components.core.exceptions import ForbiddenError


class PermissionGate:
    """
    Decides whether an actor may act on a record.

    The default gate only lets owners through. Deployments that share
    records across a household plug in a gate backed by the household
    service; this engine only consumes the boolean answer.
    """

    async def may_write(self, actor_id: int, owner_id: int, household_id: Optional[int]) -> bool:
        return actor_id == owner_id

    async def may_read(self, actor_id: int, owner_id: int, household_id: Optional[int]) -> bool:
        return await self.may_write(actor_id, owner_id, household_id)


class StaticHouseholdGate(PermissionGate):
    """Gate backed by an in-memory map of household id -> writer ids."""

    def __init__(self, writers: Dict[int, Set[int]]):
        self._writers = writers

    async def may_write(self, actor_id: int, owner_id: int, household_id: Optional[int]) -> bool:
        if actor_id == owner_id:
            return True
        if household_id is None:
            return False
        return actor_id in self._writers.get(household_id, set())


async def ensure_can_write(gate: PermissionGate, actor_id: int, record, label: str) -> None:
    """Raise ForbiddenError unless the actor may write ``record``."""
    if not await gate.may_write(actor_id, record.user_id, getattr(record, "household_id", None)):
        raise ForbiddenError(f"You do not have permission to update this {label}")


async def ensure_can_read(gate: PermissionGate, actor_id: int, record, label: str) -> None:
    """Raise ForbiddenError unless the actor may read ``record``."""
    if not await gate.may_read(actor_id, record.user_id, getattr(record, "household_id", None)):
        raise ForbiddenError(f"You do not have access to this {label}")


default_gate = PermissionGate()


def get_permission_gate() -> PermissionGate:
    """FastAPI dependency returning the configured permission gate."""
    return default_gate
