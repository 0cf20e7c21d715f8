"""Travel regulations: drafting, activation and organization scoping."""
import pytest

from seisan import db
from seisan.models import AuditLog, RegulationStatus, TravelRegulation
from seisan.services import regulation_service
from seisan.services.context import Actor
from seisan.services.errors import (
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

ARTICLES = [
    {"title": "第1条（目的）", "content": "この規程は、役員及び社員の出張旅費について定める。"},
    {"title": "第2条（日当）", "content": "日当は別表のとおり支給する。"},
]
ALLOWANCES = {"役員": {"日当": 8000, "宿泊": 15000}, "一般社員": {"日当": 5000, "宿泊": 10000}}


@pytest.fixture
def draft(admin_actor):
    return regulation_service.create_regulation(
        admin_actor,
        "出張旅費規程",
        company_info={"代表者": "賢者 一郎", "所在地": "東京都千代田区"},
        articles=ARTICLES,
        allowance_settings=ALLOWANCES,
    )


def test_create_starts_as_draft(admin_actor, draft):
    assert draft.status == RegulationStatus.DRAFT
    assert draft.version == "v1.0"
    assert draft.organization_id == admin_actor.organization_id
    assert draft.created_by == admin_actor.user_id
    assert draft.articles[0]["title"] == "第1条（目的）"
    assert AuditLog.query.filter_by(action="regulation.create", resource_id=draft.id).count() == 1


def test_create_defaults_empty_content(admin_actor):
    regulation = regulation_service.create_regulation(admin_actor, "  簡易規程  ")
    assert regulation.name == "簡易規程"
    assert regulation.to_dict()["allowance_settings"] == {}


def test_only_admins_create(manager_actor, employee_actor):
    for actor in (manager_actor, employee_actor):
        with pytest.raises(PermissionDeniedError):
            regulation_service.create_regulation(actor, "出張旅費規程")
    assert TravelRegulation.query.count() == 0


@pytest.mark.parametrize(
    "kwargs, field",
    [
        ({"name": ""}, "name"),
        ({"name": "規程", "articles": "第1条"}, "articles"),
        ({"name": "規程", "allowance_settings": 5000}, "allowance_settings"),
    ],
)
def test_create_validation(admin_actor, kwargs, field):
    with pytest.raises(ValidationError) as excinfo:
        regulation_service.create_regulation(admin_actor, **kwargs)
    assert excinfo.value.details["field"] == field
    assert TravelRegulation.query.count() == 0


def test_list_is_scoped_and_newest_first(admin_actor, manager_actor, outsider, draft):
    second = regulation_service.create_regulation(admin_actor, "出張旅費規程（改定案）")

    listed = regulation_service.list_regulations(manager_actor)
    assert [r.id for r in listed] == [second.id, draft.id]
    assert regulation_service.list_regulations(Actor.from_user(outsider)) == []

    with pytest.raises(NotFoundError):
        regulation_service.get_regulation(Actor.from_user(outsider), draft.id)


def test_list_filters_by_status(admin_actor, draft):
    assert regulation_service.list_regulations(admin_actor, status="active") == []
    assert regulation_service.list_regulations(admin_actor, status="draft") == [draft]
    with pytest.raises(ValidationError):
        regulation_service.list_regulations(admin_actor, status="published")


def test_activation_archives_previous(admin_actor, draft):
    regulation_service.activate_regulation(admin_actor, draft.id)
    revised = regulation_service.create_regulation(admin_actor, "出張旅費規程", articles=ARTICLES[:1])
    regulation_service.update_regulation(admin_actor, revised.id, {"version": "v2.0"})

    regulation_service.activate_regulation(admin_actor, revised.id)

    assert draft.status == RegulationStatus.ARCHIVED
    assert revised.status == RegulationStatus.ACTIVE
    assert regulation_service.get_active_regulation(admin_actor.organization_id).id == revised.id
    assert AuditLog.query.filter_by(action="regulation.archive", resource_id=draft.id).count() == 1


def test_archived_regulation_is_read_only(admin_actor, draft):
    regulation_service.activate_regulation(admin_actor, draft.id)
    replacement = regulation_service.create_regulation(admin_actor, "新規程")
    regulation_service.activate_regulation(admin_actor, replacement.id)

    with pytest.raises(InvalidStateError):
        regulation_service.update_regulation(admin_actor, draft.id, {"name": "戻す"})
    with pytest.raises(InvalidStateError):
        regulation_service.activate_regulation(admin_actor, draft.id)


def test_update_validates_before_changing(admin_actor, draft):
    with pytest.raises(ValidationError):
        regulation_service.update_regulation(admin_actor, draft.id, {"name": "改定", "articles": 1})
    assert db.session.get(TravelRegulation, draft.id).name == "出張旅費規程"


def test_active_regulation_cannot_be_deleted(admin_actor, draft):
    regulation_service.activate_regulation(admin_actor, draft.id)
    with pytest.raises(InvalidStateError):
        regulation_service.delete_regulation(admin_actor, draft.id)


def test_delete_draft(admin_actor, draft):
    regulation_service.delete_regulation(admin_actor, draft.id)
    assert TravelRegulation.query.count() == 0
    assert AuditLog.query.filter_by(action="regulation.delete").count() == 1
