"""
Reference data: committees, item types and units.
"""

from dataclasses import dataclass
from typing import Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stocktrail.activity import ActivityRecorder
from stocktrail.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from stocktrail.storage.models import ActionType, Classification, Committee, ItemType, Role, Unit, User
from stocktrail.storage.unit_of_work import atomic

# kind -> (model, label used in messages)
REFERENCE_KINDS = {
    "committees": (Committee, "Committee"),
    "units": (Unit, "Unit"),
    "types": (ItemType, "Type"),
}


@dataclass
class Option:
    """Dropdown entry."""

    value: int
    label: str


class ReferenceService:
    """Lookup tables used by items and borrowing records."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.recorder = ActivityRecorder(session)

    @staticmethod
    def _kind(kind: str):
        try:
            return REFERENCE_KINDS[kind]
        except KeyError:
            raise NotFoundError("Setting", kind)

    async def options(self) -> dict[str, list[Option]]:
        """Committees, types and units as {value, label} lists."""
        result = {}
        for kind, (model, _) in REFERENCE_KINDS.items():
            rows = (
                await self.session.execute(select(model.id, model.name).order_by(model.id))
            ).all()
            result[kind] = [Option(value=r[0], label=r[1]) for r in rows]
        return result

    async def type_names(self) -> list[str]:
        rows = await self.session.execute(select(ItemType.name).order_by(ItemType.name.asc()))
        return list(rows.scalars().all())

    async def create(
        self,
        actor: User,
        kind: str,
        name: Optional[str],
        classification: Optional[str] = None,
    ) -> Option:
        """Add a committee, unit or type. Superadmin only."""
        model, label = self._kind(kind)
        if actor.role != Role.SUPERADMIN:
            raise ForbiddenError("Access Denied. Only Superadmins can modify system settings.")
        if not name or not name.strip():
            raise ValidationError("Missing required fields", detail="name is required")

        values = {"name": name.strip()}
        if model is ItemType:
            try:
                values["classification"] = Classification(classification or Classification.ASSET.value)
            except ValueError:
                raise ValidationError(
                    "Invalid classification",
                    detail="classification must be Asset or Consumable",
                )

        async with atomic(self.session, f"create_{kind}"):
            row = model(**values)
            self.session.add(row)
            try:
                await self.session.flush()
            except IntegrityError:
                raise ConflictError(f'{label} "{values["name"]}" already exists.')

            await self.recorder.log(ActionType.ADD, f"Added {label.lower()}: {row.name}", actor.id)

        logger.info(f"{label} {row.id} created by user {actor.id}")
        return Option(value=row.id, label=row.name)

    async def delete(self, actor: User, kind: str, row_id: int) -> None:
        """Remove a definition that no item or borrowing record references. Superadmin only."""
        model, label = self._kind(kind)
        if actor.role != Role.SUPERADMIN:
            raise ForbiddenError("Access Denied. Only Superadmins can modify system settings.")

        async with atomic(self.session, f"delete_{kind}"):
            row = await self.session.get(model, row_id)
            if row is None:
                raise NotFoundError(label, row_id)
            row_name = row.name

            await self.session.delete(row)
            try:
                await self.session.flush()
            except IntegrityError:
                raise ConflictError(
                    "Cannot delete: This option is currently being used by an active item."
                )

            await self.recorder.log(ActionType.REMOVE, f"Removed {label.lower()}: {row_name}", actor.id)

        logger.info(f"{label} {row_id} deleted by user {actor.id}")
