"""Resident registry: lookup, search and profile updates for registered households"""

import logging
import math
import re
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from rt_finance.domain.exceptions import ValidationError, NotFoundError
from rt_finance.infrastructure.database.models import Resident
from rt_finance.infrastructure.database.repositories import ResidentRepository
from rt_finance.infrastructure.database.session import atomic

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("full_name", "occupancy_type", "house_status", "notes")


def house_sort_key(house_number: str):
    """'2' < '10' < '12A' < '12B'; numbers without a leading digit go last"""
    match = re.match(r"\d+", house_number)
    return (0, int(match.group()), house_number) if match else (1, 0, house_number)


class ResidentRegistry:
    def __init__(self, db: Session):
        self.db = db
        self.residents = ResidentRepository(db)

    def list_residents(
        self, page: int = 1, limit: int = 50, block: Optional[str] = None, search: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Page of residents filtered by block and a case-insensitive name fragment"""
        rows, total = self.residents.search(block=block, name=search, offset=(page - 1) * limit, limit=limit)
        return {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit),
            "data": rows,
        }

    def get(self, resident_id: int) -> Resident:
        resident = self.residents.get_resident(resident_id)
        if resident is None:
            raise NotFoundError("Resident not found")
        return resident

    def get_by_house(self, block: str, house_number: str) -> Resident:
        resident = self.residents.find_by_house(block, house_number)
        if resident is None:
            raise NotFoundError("Resident not found")
        return resident

    def update(self, resident: Resident, changes: Dict[str, Optional[str]]) -> Resident:
        """
        Apply the provided profile fields; absent or empty ones are left as they are.

        Raises:
            ValidationError: none of the updatable fields was provided
        """
        changes = {field: changes.get(field) for field in UPDATABLE_FIELDS if changes.get(field)}
        if not changes:
            raise ValidationError("At least one field must be provided for update.")

        with atomic(self.db):
            for field, value in changes.items():
                setattr(resident, field, value)

        logger.info(
            "Resident updated",
            extra={"resident_id": resident.id, "fields": sorted(changes)},
        )
        return resident

    def update_by_id(self, resident_id: int, changes: Dict[str, Optional[str]]) -> Resident:
        return self.update(self.get(resident_id), changes)

    def update_by_house(self, block: str, house_number: str, changes: Dict[str, Optional[str]]) -> Resident:
        return self.update(self.get_by_house(block, house_number), changes)

    def blocks(self) -> List[str]:
        return self.residents.list_blocks()

    def house_numbers(self, block: Optional[str]) -> List[str]:
        """House numbers in one block, in registration order"""
        if not block:
            raise ValidationError("block is required")
        return [house for _, house in self.residents.list_houses(block)]

    def block_houses(self) -> List[Dict[str, Any]]:
        """Every block with its house numbers in natural order"""
        houses_by_block: Dict[str, List[str]] = {}
        for block, house in self.residents.list_houses():
            houses_by_block.setdefault(block, []).append(house)

        return [
            {"block": block, "houses": sorted(houses, key=house_sort_key)}
            for block, houses in sorted(houses_by_block.items())
        ]
