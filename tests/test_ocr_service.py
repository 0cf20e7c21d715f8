"""Receipt upload with OCR pre-fill."""
from datetime import date
from decimal import Decimal
from unittest import mock

import pytest

from seisan import db
from seisan.models import Application, ExpenseItem
from seisan.services import ocr_service
from seisan.services.errors import InvalidStateError, ValidationError

JPEG = b"\xff\xd8\xff\xe0fake-receipt"


@pytest.fixture
def taxi_item(expense_application):
    return next(item for item in expense_application.expense_items if item.amount == 3000)


@pytest.fixture
def ocr_url(app, monkeypatch):
    monkeypatch.setitem(app.config, "OCR_SERVICE_URL", "https://ocr.example.test/receipts")


def ocr_response(result):
    response = mock.Mock()
    response.json.return_value = {"ocrResult": result}
    return response


def test_receipt_prefills_amount_and_date(ocr_url, employee_actor, expense_application, taxi_item, storage_root):
    result = {
        "storeName": "日本交通",
        "date": "2026-10-01",
        "amount": 1200,
        "items": [{"name": "乗車料金", "price": 1200}],
        "confidence": 0.93,
        "rawText": "日本交通 ¥1,200",
    }
    with mock.patch("seisan.services.ocr_service.requests.post", return_value=ocr_response(result)) as post:
        item = ocr_service.attach_receipt(
            employee_actor, expense_application.id, taxi_item.id, JPEG, "taxi.jpg", "image/jpeg"
        )

    assert post.call_args.kwargs["json"]["filename"] == "taxi.jpg"
    assert item.amount == Decimal("1200.00")
    assert item.date == date(2026, 10, 1)
    assert item.receipt_metadata["ocr_result"]["store_name"] == "日本交通"
    assert item.receipt_metadata["ocr_result"]["confidence"] == 0.93
    assert db.session.get(Application, expense_application.id).total_amount == Decimal("5700.00")

    assert item.receipt_url.startswith(f"receipts/{employee_actor.user_id}/")
    assert item.receipt_url.endswith(".jpg")
    assert (storage_root / item.receipt_url).read_bytes() == JPEG


def test_unconfigured_ocr_keeps_upload(employee_actor, expense_application, taxi_item):
    item = ocr_service.attach_receipt(
        employee_actor, expense_application.id, taxi_item.id, JPEG, "taxi.jpg", "image/jpeg"
    )

    assert item.receipt_url is not None
    assert item.amount == Decimal("3000.00")
    assert item.receipt_metadata["ocr_error"] == "OCR service is not configured."
    assert db.session.get(Application, expense_application.id).total_amount == Decimal("7500.00")


def test_unreachable_ocr_records_error(ocr_url, employee_actor, expense_application, taxi_item):
    item = ocr_service.attach_receipt(
        employee_actor, expense_application.id, taxi_item.id, JPEG, "taxi.jpg", "image/jpeg"
    )
    assert item.receipt_metadata["ocr_error"].startswith("OCR request failed")


def test_zero_amount_is_not_prefilled(ocr_url, employee_actor, expense_application, taxi_item):
    with mock.patch("seisan.services.ocr_service.requests.post", return_value=ocr_response({"amount": 0})):
        item = ocr_service.attach_receipt(
            employee_actor, expense_application.id, taxi_item.id, JPEG, "taxi.jpg", "image/jpeg"
        )
    assert item.amount == Decimal("3000.00")


def test_disallowed_content_type(employee_actor, expense_application, taxi_item):
    with pytest.raises(ValidationError):
        ocr_service.attach_receipt(
            employee_actor, expense_application.id, taxi_item.id, b"MZ", "tool.exe", "application/x-msdownload"
        )


def test_empty_upload(employee_actor, expense_application, taxi_item):
    with pytest.raises(ValidationError):
        ocr_service.attach_receipt(employee_actor, expense_application.id, taxi_item.id, b"", "taxi.jpg")


def test_receipt_on_pending_application(employee_actor, pending_application):
    item_id = pending_application.expense_items[0].id
    with pytest.raises(InvalidStateError):
        ocr_service.attach_receipt(employee_actor, pending_application.id, item_id, JPEG, "taxi.jpg", "image/jpeg")


def test_sub_cent_ocr_amount_is_not_prefilled(ocr_url, employee_actor, expense_application, taxi_item):
    with mock.patch("seisan.services.ocr_service.requests.post", return_value=ocr_response({"amount": 0.004})):
        item = ocr_service.attach_receipt(
            employee_actor, expense_application.id, taxi_item.id, JPEG, "taxi.jpg", "image/jpeg"
        )
    assert item.amount == Decimal("3000.00")
    assert db.session.get(Application, expense_application.id).total_amount == Decimal("7500.00")


def test_failure_after_upload_rolls_back_and_removes_file(
    employee_actor, expense_application, taxi_item, storage_root
):
    with mock.patch("seisan.services.ocr_service.write_audit_log", side_effect=RuntimeError("disk full")):
        with pytest.raises(RuntimeError):
            ocr_service.attach_receipt(
                employee_actor, expense_application.id, taxi_item.id, JPEG, "taxi.jpg", "image/jpeg"
            )

    assert db.session.get(ExpenseItem, taxi_item.id).receipt_url is None
    receipts = storage_root / "receipts"
    assert not receipts.exists() or list(receipts.rglob("*.jpg")) == []
