# ctam_core/organizations/selectors.py
from __future__ import annotations

from django.db.models import QuerySet

from ctam_core.organizations.hierarchy import Hierarchy, ProvinceNode, RegionNode, UnitNode
from ctam_core.organizations.models import HealthRegion, Province, Unit


def load_hierarchy(*, active_only: bool = True) -> Hierarchy:
    """
    Three flat queries, no per-row parent lookups.
    """
    units = Unit.objects.all()
    if active_only:
        units = units.filter(is_active=True)

    return Hierarchy(
        regions=[
            RegionNode(id=r["id"], name=r["name"], number=r["region_number"])
            for r in HealthRegion.objects.values("id", "name", "region_number")
        ],
        provinces=[
            ProvinceNode(id=p["id"], name=p["name"], region_id=p["health_region_id"])
            for p in Province.objects.values("id", "name", "health_region_id")
        ],
        units=[
            UnitNode(id=u["id"], name=u["name"], province_id=u["province_id"], kind=u["kind"])
            for u in units.values("id", "name", "province_id", "kind")
        ],
    )


def units_filtered(*, province_id=None, region_id=None, kind: str | None = None, search: str | None = None) -> QuerySet[Unit]:
    qs = Unit.objects.select_related("province", "province__health_region").filter(is_active=True)
    if province_id:
        qs = qs.filter(province_id=province_id)
    if region_id:
        qs = qs.filter(province__health_region_id=region_id)
    if kind:
        qs = qs.filter(kind=kind)
    if search:
        qs = qs.filter(name__icontains=search)
    return qs.order_by("name")
