"""Generated documents: rendering, storage and access."""
from datetime import timedelta

import pytest

from seisan.models import GeneratedDocument
from seisan.models.base import utcnow
from seisan.services import application_service, approval_engine, document_service
from seisan.services.context import Actor
from seisan.services.errors import ConfigurationError, NotFoundError, ValidationError


@pytest.fixture
def approved_trip(employee_actor, manager_actor, trip_payload):
    trip_payload["actual_daily_allowance"] = 15000
    trip_payload["report_content"] = "新規契約を締結"
    application = application_service.create_application(
        employee_actor, "business_trip", "大阪出張", {"trip": trip_payload}
    )
    application_service.submit_application(employee_actor, application.id)
    approval_engine.decide(manager_actor, application.id, "approved")
    return application


def test_expense_settlement_html(employee_actor, expense_application, storage_root):
    document = document_service.generate_application_document(
        employee_actor, expense_application.id, "expense_settlement"
    )

    assert document.mime_type == "text/html"
    assert document.title == "旅費精算書 - 大阪出張 経費"
    assert document.application_id == expense_application.id
    html = (storage_root / document.file_url).read_text(encoding="utf-8")
    assert "タクシー" in html
    assert "合計金額: ¥7,500" in html
    assert document.file_size == len(html.encode("utf-8"))
    assert GeneratedDocument.query.count() == 1


def test_business_report_html(employee_actor, approved_trip, storage_root):
    document = document_service.generate_application_document(employee_actor, approved_trip.id, "business_report")
    html = (storage_root / document.file_url).read_text(encoding="utf-8")
    assert "出張報告書 - 大阪出張" in html
    assert "新規契約を締結" in html
    assert "賢者商事" in html


def test_business_report_requires_trip(employee_actor, expense_application):
    with pytest.raises(ValidationError):
        document_service.generate_application_document(employee_actor, expense_application.id, "business_report")
    assert GeneratedDocument.query.count() == 0


def test_pdf_needs_document_service(employee_actor, expense_application):
    with pytest.raises(ConfigurationError):
        document_service.generate_application_document(
            employee_actor, expense_application.id, "expense_settlement", "pdf"
        )


def test_unknown_format(employee_actor, expense_application):
    with pytest.raises(ValidationError):
        document_service.generate_application_document(
            employee_actor, expense_application.id, "expense_settlement", "xlsx"
        )


def test_allowance_detail_totals_approved_trips(employee_actor, approved_trip, expense_application, storage_root):
    today = utcnow().date()
    document = document_service.generate_allowance_detail(
        employee_actor, None, today - timedelta(days=1), today + timedelta(days=1)
    )

    assert document.application_id is None
    assert document.content["total_allowance"] == 15000
    assert [trip["destination"] for trip in document.content["trips"]] == ["大阪"]
    assert "日当合計: ¥15,000" in (storage_root / document.file_url).read_text(encoding="utf-8")


def test_allowance_detail_rejects_reversed_range(employee_actor):
    with pytest.raises(ValidationError):
        document_service.generate_allowance_detail(employee_actor, None, "2026-10-10", "2026-10-01")


def test_allowance_detail_for_other_user(manager_actor, employee, outsider):
    document = document_service.generate_allowance_detail(manager_actor, employee.id, "2026-10-01", "2026-10-31")
    assert document.content["applicant"] == "山田 花子"
    assert document.content["trips"] == []

    with pytest.raises(NotFoundError):
        document_service.generate_allowance_detail(Actor.from_user(outsider), employee.id, "2026-10-01", "2026-10-31")


def test_travel_regulation_uses_active_version(admin_actor, manager_actor, storage_root):
    from seisan.services import regulation_service
    regulation = regulation_service.create_regulation(
        admin_actor,
        "出張旅費規程",
        company_info={"代表者": "賢者 一郎"},
        articles={"第1条（目的）": "出張旅費の支給基準を定める。"},
        allowance_settings={"一般社員": {"日当": 5000}},
    )
    with pytest.raises(NotFoundError):
        document_service.generate_regulation_document(manager_actor)

    regulation_service.activate_regulation(admin_actor, regulation.id)
    document = document_service.generate_regulation_document(manager_actor)

    assert document.type == "travel_regulation"
    assert document.title == "出張旅費規程 - 賢者商事"
    assert document.content["version"] == "v1.0"
    html = (storage_root / document.file_url).read_text(encoding="utf-8")
    assert "第1条（目的）" in html
    assert "日当: 5000" in html
    assert "賢者 一郎" in html


def test_travel_regulation_draft_by_id(admin_actor, outsider):
    from seisan.services import regulation_service
    draft = regulation_service.create_regulation(admin_actor, "改定案", articles=["出張は事前に申請する。"])

    document = document_service.generate_regulation_document(admin_actor, draft.id)
    assert document.content["articles"] == [{"title": "第1条", "content": "出張は事前に申請する。"}]

    with pytest.raises(NotFoundError):
        document_service.generate_regulation_document(Actor.from_user(outsider), draft.id)
