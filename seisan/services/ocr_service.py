"""Receipt OCR: upload a receipt image and pre-fill the expense item."""
from __future__ import annotations

import base64
import logging
import mimetypes
from dataclasses import asdict, dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

import requests
from flask import current_app

from seisan import db
from seisan.models import ExpenseItem
from seisan.models.base import utcnow
from seisan.services.application_service import (
    get_editable_application,
    get_expense_item,
    parse_amount,
    recalculate_total,
)
from seisan.services.audit_service import snapshot, write_audit_log
from seisan.services.context import Actor
from seisan.services.errors import ConfigurationError, IntegrationFailure, ServiceError, ValidationError
from seisan.services.storage_service import build_object_key, delete_object, save_object

logger = logging.getLogger(__name__)


@dataclass
class ReceiptData:
    store_name: Optional[str] = None
    date: Optional[str] = None
    amount: float = 0
    line_items: List[Dict[str, Any]] = field(default_factory=list)
    confidence: float = 0
    raw_text: str = ""

    @classmethod
    def from_response(cls, payload: Dict[str, Any]) -> "ReceiptData":
        try:
            amount = float(payload.get("amount") or 0)
            confidence = float(payload.get("confidence") or 0)
        except (TypeError, ValueError):
            raise IntegrationFailure("OCR service returned a malformed result.", service="ocr") from None
        return cls(
            store_name=payload.get("storeName"),
            date=payload.get("date") or None,
            amount=amount,
            line_items=list(payload.get("items") or []),
            confidence=confidence,
            raw_text=payload.get("rawText") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def extract_receipt(image_bytes: bytes, filename: str = "receipt.jpg") -> ReceiptData:
    """Send the image to ``OCR_SERVICE_URL`` and parse the receipt fields."""
    url = current_app.config.get("OCR_SERVICE_URL")
    if not url:
        raise ConfigurationError("OCR service is not configured.", service="ocr")

    headers = {"Content-Type": "application/json"}
    if current_app.config.get("OCR_API_KEY"):
        headers["Authorization"] = f"Bearer {current_app.config['OCR_API_KEY']}"
    payload = {
        "imageData": base64.b64encode(image_bytes).decode("ascii"),
        "filename": filename,
    }

    try:
        response = requests.post(
            url, json=payload, headers=headers, timeout=current_app.config["EXTERNAL_HTTP_TIMEOUT"]
        )
        response.raise_for_status()
        body = response.json()
    except requests.RequestException as exc:
        raise IntegrationFailure(f"OCR request failed: {exc}", service="ocr") from exc
    except ValueError:
        raise IntegrationFailure("OCR service returned invalid JSON.", service="ocr") from None

    return ReceiptData.from_response(body.get("ocrResult", body))


def _prefill(item: ExpenseItem, receipt: ReceiptData) -> None:
    """Copy a recognised amount and date onto the item; unusable values are skipped."""
    if receipt.amount > 0:
        try:
            item.amount = parse_amount(Decimal(str(receipt.amount)), "amount", positive=True)
        except ValidationError:
            logger.info(f"Ignoring OCR amount {receipt.amount} for item {item.id}")
    if receipt.date:
        try:
            item.date = date.fromisoformat(receipt.date)
        except ValueError:
            logger.info(f"Ignoring unparseable OCR date '{receipt.date}' for item {item.id}")


def attach_receipt(
    actor: Actor,
    application_id: str,
    item_id: str,
    image_bytes: bytes,
    filename: str,
    content_type: Optional[str] = None,
) -> ExpenseItem:
    """Store the receipt, run OCR and pre-fill amount/date when recognised.

    A failed OCR call keeps the upload and records the error in
    ``receipt_metadata``.
    """
    if not image_bytes:
        raise ValidationError("Receipt file is empty.", field="file")

    application = get_editable_application(actor, application_id)
    item = get_expense_item(application, item_id)
    before = snapshot(item)

    content_type = content_type or mimetypes.guess_type(filename or "")[0]
    path = save_object("receipts", build_object_key(actor.user_id, filename), image_bytes, content_type)

    try:
        item.receipt_url = path
        processed_at = utcnow().isoformat()
        try:
            receipt = extract_receipt(image_bytes, filename)
        except ServiceError as exc:
            logger.warning(f"OCR failed for expense item {item.id}: {exc.message}")
            item.receipt_metadata = {"ocr_error": exc.message, "processed_at": processed_at}
        else:
            item.receipt_metadata = {"ocr_result": receipt.to_dict(), "processed_at": processed_at}
            _prefill(item, receipt)

        recalculate_total(application.id)
        write_audit_log(actor, "expense_item.receipt", item, old_values=before, new_values=snapshot(item))
        db.session.commit()
    except Exception:
        db.session.rollback()
        delete_object(path)
        raise
    return item
