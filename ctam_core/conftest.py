# ctam_core/conftest.py
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from ctam_core.assessments.models import Category
from ctam_core.iam.models import Profile, Role
from ctam_core.organizations.models import HealthRegion, Province, Unit, UnitKind


@pytest.fixture
def region(db):
    return HealthRegion.objects.create(name="Health Region 1", region_number=1)


@pytest.fixture
def other_region(db):
    return HealthRegion.objects.create(name="Health Region 2", region_number=2)


@pytest.fixture
def province(region):
    return Province.objects.create(health_region=region, code="CMI", name="Chiang Mai")


@pytest.fixture
def sibling_province(region):
    return Province.objects.create(health_region=region, code="LPN", name="Lamphun")


@pytest.fixture
def other_province(other_region):
    return Province.objects.create(health_region=other_region, code="TAK", name="Tak")


@pytest.fixture
def unit(province):
    return Unit.objects.create(province=province, code="H001", name="Nakornping Hospital", kind=UnitKind.HOSPITAL)


@pytest.fixture
def neighbour_unit(province):
    return Unit.objects.create(province=province, code="H002", name="Sanpatong Hospital", kind=UnitKind.HOSPITAL)


@pytest.fixture
def sibling_unit(sibling_province):
    return Unit.objects.create(province=sibling_province, code="H101", name="Lamphun Hospital", kind=UnitKind.HOSPITAL)


@pytest.fixture
def far_unit(other_province):
    return Unit.objects.create(province=other_province, code="H201", name="Tak Hospital", kind=UnitKind.HOSPITAL)


@pytest.fixture
def categories(db):
    return [
        Category.objects.create(code="BACKUP", name_th="สำรองข้อมูล", name_en="Backup", order_number=1, weight=Decimal("1")),
        Category.objects.create(code="ACCESS", name_th="การควบคุมการเข้าถึง", name_en="Access control", order_number=2, weight=Decimal("1")),
        Category.objects.create(code="POLICY", name_th="นโยบาย", name_en="Policy", order_number=3, weight=Decimal("2")),
    ]


@pytest.fixture
def make_user(db):
    """
    make_user(role, unit=..., province=..., health_region=...) -> User with an active Profile.
    """
    User = get_user_model()
    counter = {"n": 0}

    def _make(role: str, *, unit=None, province=None, health_region=None):
        counter["n"] += 1
        user = User.objects.create_user(username=f"{role}-{counter['n']}", password="Pass@12345", is_active=True)
        Profile.objects.create(
            user=user,
            role=role,
            unit=unit,
            province=province,
            health_region=health_region,
            full_name=f"{role} user",
        )
        return user

    return _make


@pytest.fixture
def hospital_user(make_user, unit):
    return make_user(Role.HOSPITAL_IT, unit=unit)


@pytest.fixture
def provincial_user(make_user, province):
    return make_user(Role.PROVINCIAL, province=province)


@pytest.fixture
def regional_user(make_user, region):
    return make_user(Role.REGIONAL, health_region=region)


@pytest.fixture
def central_user(make_user):
    return make_user(Role.CENTRAL_ADMIN)


@pytest.fixture
def client_for():
    def _client(user):
        c = APIClient()
        c.force_authenticate(user=user)
        return c

    return _client
