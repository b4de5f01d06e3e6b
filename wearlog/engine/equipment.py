"""Equipment registry: create, edit, retire and pick the default pair."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from wearlog.engine.base import Equipment
from wearlog.engine.config_loader import EnginePolicy
from wearlog.engine.errors import EquipmentArchived, EquipmentNotFound, InvalidEquipment
from wearlog.engine.sessions import SessionLifecycleManager

if TYPE_CHECKING:
    from wearlog.services.store import Records

logger = logging.getLogger("wearlog.engine.equipment")

_EDITABLE_FIELDS = frozenset(
    {"brand", "model", "notes", "inactivity_timeout_seconds", "estimated_lifespan_km"}
)


def _validate(equipment: Equipment) -> None:
    errors: list[str] = []
    if not equipment.brand or not equipment.brand.strip():
        errors.append("brand must not be blank")
    if not equipment.model or not equipment.model.strip():
        errors.append("model must not be blank")
    if equipment.inactivity_timeout_seconds <= 0:
        errors.append("inactivity_timeout_seconds must be positive")
    if equipment.estimated_lifespan_km <= 0:
        errors.append("estimated_lifespan_km must be positive")
    if errors:
        raise InvalidEquipment("; ".join(errors))


class EquipmentRegistry:
    def __init__(self, lifecycle: SessionLifecycleManager, policy: EnginePolicy) -> None:
        self._lifecycle = lifecycle
        self._policy = policy

    async def get(self, records: Records, equipment_id: UUID) -> Equipment:
        equipment = await records.get_equipment(equipment_id)
        if equipment is None:
            raise EquipmentNotFound(equipment_id)
        return equipment

    async def list(self, records: Records, include_archived: bool = True) -> list[Equipment]:
        return await records.list_equipment(include_archived=include_archived)

    async def create(
        self,
        records: Records,
        brand: str,
        model: str,
        notes: str = "",
        inactivity_timeout_seconds: int | None = None,
        estimated_lifespan_km: float | None = None,
        is_default: bool = False,
    ) -> Equipment:
        """Register new equipment.  Policy defaults fill unspecified limits.

        Raises:
            InvalidEquipment: Blank names or non-positive limits.
        """
        equipment = Equipment(
            brand=brand.strip(),
            model=model.strip(),
            notes=notes,
            inactivity_timeout_seconds=(
                inactivity_timeout_seconds
                if inactivity_timeout_seconds is not None
                else self._policy.sessions.default_inactivity_timeout_seconds
            ),
            estimated_lifespan_km=(
                estimated_lifespan_km
                if estimated_lifespan_km is not None
                else self._policy.equipment.default_lifespan_km
            ),
        )
        _validate(equipment)
        if is_default:
            await records.clear_default_equipment()
            equipment.is_default = True
        await records.insert_equipment(equipment)
        logger.info("Created equipment %s (%s)", equipment.equipment_id, equipment.display_name)
        return equipment

    async def update(self, records: Records, equipment_id: UUID, **fields: Any) -> Equipment:
        """Edit descriptive fields and limits.

        Raises:
            EquipmentNotFound: Unknown equipment.
            EquipmentArchived: Archived equipment is read-only.
            InvalidEquipment:  Unknown field or invalid value.
        """
        unknown = set(fields) - _EDITABLE_FIELDS
        if unknown:
            raise InvalidEquipment(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        equipment = await self.get(records, equipment_id)
        if equipment.archived:
            raise EquipmentArchived(equipment_id)

        for name, value in fields.items():
            if value is None:
                continue
            if name in ("brand", "model"):
                value = value.strip()
            setattr(equipment, name, value)
        _validate(equipment)
        await records.update_equipment(equipment)
        logger.info("Updated equipment %s: %s", equipment_id, sorted(fields))
        return equipment

    async def archive(self, records: Records, equipment_id: UUID, now: datetime) -> Equipment:
        """Retire equipment: close its open session and drop its default flag."""
        equipment = await self.get(records, equipment_id)
        if equipment.archived:
            logger.debug("Equipment %s already archived", equipment_id)
            return equipment

        active = await self._lifecycle.active_session(records)
        if active is not None and active.equipment_id == equipment_id:
            await self._lifecycle.stop(records, equipment_id, now)

        equipment.archived = True
        equipment.is_default = False
        await records.update_equipment(equipment)
        logger.info("Archived equipment %s", equipment_id)
        return equipment

    async def unarchive(self, records: Records, equipment_id: UUID) -> Equipment:
        equipment = await self.get(records, equipment_id)
        if not equipment.archived:
            return equipment
        equipment.archived = False
        await records.update_equipment(equipment)
        logger.info("Unarchived equipment %s", equipment_id)
        return equipment

    async def set_default(
        self, records: Records, equipment_id: UUID, is_default: bool = True
    ) -> Equipment:
        """Make ``equipment_id`` the only default, or clear its default flag.

        Raises:
            EquipmentArchived: Archived equipment cannot become default.
        """
        equipment = await self.get(records, equipment_id)
        if not is_default:
            if equipment.is_default:
                equipment.is_default = False
                await records.update_equipment(equipment)
                logger.info("Cleared default flag on %s", equipment_id)
            return equipment

        if equipment.archived:
            raise EquipmentArchived(equipment_id)
        # the unique index allows one default; clear first, then set
        await records.clear_default_equipment()
        equipment.is_default = True
        await records.update_equipment(equipment)
        logger.info("Default equipment is now %s", equipment_id)
        return equipment

    async def delete(self, records: Records, equipment_id: UUID) -> Equipment:
        """Hard-delete equipment with its sessions and attributions."""
        equipment = await self.get(records, equipment_id)
        await records.delete_equipment(equipment_id)
        logger.info("Deleted equipment %s and its history", equipment_id)
        return equipment
