# ctam_core/organizations/hierarchy.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional
from uuid import UUID


@dataclass(frozen=True)
class RegionNode:
    id: UUID
    name: str
    number: int = 0


@dataclass(frozen=True)
class ProvinceNode:
    id: UUID
    name: str
    region_id: UUID


@dataclass(frozen=True)
class UnitNode:
    id: UUID
    name: str
    province_id: UUID
    kind: str = "hospital"


class Hierarchy:
    """
    Static, read-only snapshot of region -> province -> unit.

    Built once per request by `organizations.selectors.load_hierarchy` and
    shared by AccessPolicy and the aggregation code, so neither has to query
    the parent chain row by row.
    """

    def __init__(
        self,
        *,
        regions: Iterable[RegionNode],
        provinces: Iterable[ProvinceNode],
        units: Iterable[UnitNode],
    ) -> None:
        self._regions = {r.id: r for r in regions}
        self._provinces = {p.id: p for p in provinces}
        self._units = {u.id: u for u in units}

        self._provinces_by_region: dict[UUID, list[ProvinceNode]] = {}
        for p in self._provinces.values():
            self._provinces_by_region.setdefault(p.region_id, []).append(p)

        self._units_by_province: dict[UUID, list[UnitNode]] = {}
        for u in self._units.values():
            self._units_by_province.setdefault(u.province_id, []).append(u)

    # -------------------------
    # Lookups
    # -------------------------
    def region(self, region_id: UUID) -> Optional[RegionNode]:
        return self._regions.get(region_id)

    def province(self, province_id: UUID) -> Optional[ProvinceNode]:
        return self._provinces.get(province_id)

    def unit(self, unit_id: UUID) -> Optional[UnitNode]:
        return self._units.get(unit_id)

    def region_of_province(self, province_id: UUID) -> Optional[UUID]:
        p = self._provinces.get(province_id)
        return p.region_id if p else None

    def province_of_unit(self, unit_id: UUID) -> Optional[UUID]:
        u = self._units.get(unit_id)
        return u.province_id if u else None

    def region_of_unit(self, unit_id: UUID) -> Optional[UUID]:
        province_id = self.province_of_unit(unit_id)
        return self.region_of_province(province_id) if province_id else None

    # -------------------------
    # Children (sorted for stable report rows)
    # -------------------------
    def regions(self) -> list[RegionNode]:
        return sorted(self._regions.values(), key=lambda r: (r.number, r.name))

    def provinces_in(self, region_id: UUID) -> list[ProvinceNode]:
        return sorted(self._provinces_by_region.get(region_id, []), key=lambda p: p.name)

    def units_in(self, province_id: UUID) -> list[UnitNode]:
        return sorted(self._units_by_province.get(province_id, []), key=lambda u: u.name)

    def unit_ids(self) -> list[UUID]:
        return list(self._units)
