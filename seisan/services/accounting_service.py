"""Accounting sync: mirror approved applications into bookkeeping services.

Each attempt is recorded in ``accounting_integration_logs``. Sync failures are
caught here and written to the log; they never propagate into the approval
that triggered them.
"""
from __future__ import annotations

import csv
import io
import logging
import threading
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Type

import requests
from flask import current_app
from sqlalchemy import select

from seisan import db
from seisan.models import (
    AccountingIntegrationLog,
    AccountingOperation,
    Application,
    ApplicationType,
    IntegrationStatus,
)
from seisan.models.base import utcnow
from seisan.services.context import Actor
from seisan.services.errors import (
    ConfigurationError,
    IntegrationFailure,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ServiceError,
    ValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_SERVICE = "freee"
TRAVEL_ACCOUNT_ITEM_ID = 123
TAX_CODE_PURCHASE_8 = 108

TRIP_LINE_LABELS = (
    ("estimated_daily_allowance", "出張日当"),
    ("estimated_transportation", "交通費"),
    ("estimated_accommodation", "宿泊費"),
)

YAYOI_HEADER = ["取引日", "借方勘定科目", "借方補助科目", "借方金額", "貸方勘定科目", "貸方補助科目", "貸方金額", "摘要"]


@dataclass
class TransactionLine:
    entry_date: date
    amount: Decimal
    description: str
    category: str


@dataclass
class SyncResult:
    success: bool
    service: str
    operation: str
    log_id: Optional[str] = None
    response: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "service": self.service,
            "operation": self.operation,
            "log_id": self.log_id,
            "response": self.response,
            "error": self.error,
        }


def _json_amount(amount: Decimal) -> int | float:
    return int(amount) if amount == amount.to_integral_value() else float(amount)


def _credential(credentials: Dict[str, Any], *names: str) -> Any:
    for name in names:
        if credentials.get(name):
            return credentials[name]
    return None


def build_transaction_lines(application: Application, today: Optional[date] = None) -> List[TransactionLine]:
    """One line per non-zero trip estimate, or one per expense item."""
    today = today or date.today()
    lines: List[TransactionLine] = []

    if application.type == ApplicationType.BUSINESS_TRIP:
        trip = application.trip_detail
        if trip is None:
            return lines
        for field_name, label in TRIP_LINE_LABELS:
            amount = Decimal(str(getattr(trip, field_name) or 0))
            if amount > 0:
                lines.append(TransactionLine(today, amount, f"{label} - {trip.purpose}", label))
        return lines

    for item in application.expense_items:
        category = item.category.name if item.category else "経費"
        lines.append(
            TransactionLine(
                item.date or today,
                Decimal(str(item.amount)),
                item.description or category,
                category,
            )
        )
    return lines


# ---------------------------------------------------------------------------
# Service clients
# ---------------------------------------------------------------------------

class AccountingClient:
    """Base adapter; subclasses translate an application for one service."""

    name = ""
    operations = (AccountingOperation.CREATE_ENTRY.value,)

    def __init__(self, credentials: Dict[str, Any]):
        self.credentials = credentials
        self.timeout = current_app.config["EXTERNAL_HTTP_TIMEOUT"]

    def build_request(
        self,
        operation: str,
        application: Application,
        lines: List[TransactionLine],
        reference: Optional[str] = None,
    ) -> Dict[str, Any]:
        raise NotImplementedError

    def send(self, operation: str, request_data: Dict[str, Any], reference: Optional[str] = None) -> Dict[str, Any]:
        raise NotImplementedError

    def reference_from(self, response: Dict[str, Any]) -> Optional[str]:
        """Remote id of a created entry, used by later update/delete calls."""
        return None

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {_credential(self.credentials, 'access_token', 'accessToken')}",
            "Content-Type": "application/json",
        }

    def _call(self, method: str, url: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = requests.request(method, url, json=payload, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as exc:
            raise IntegrationFailure(f"{self.name} request failed: {exc}", service=self.name) from exc

        if not response.ok:
            raise IntegrationFailure(
                f"{self.name} API error: {response.status_code} - {response.text}",
                service=self.name,
                status=response.status_code,
            )
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {"body": response.text}


class FreeeClient(AccountingClient):
    name = "freee"
    operations = tuple(op.value for op in AccountingOperation)

    def _deals_url(self, reference: Optional[str] = None) -> str:
        base = f"{current_app.config['FREEE_API_URL'].rstrip('/')}/deals"
        return f"{base}/{reference}" if reference else base

    def build_request(self, operation, application, lines, reference=None):
        request_data: Dict[str, Any] = {
            "company_id": _credential(self.credentials, "company_id", "companyId"),
        }
        if operation == AccountingOperation.DELETE_ENTRY.value:
            return request_data

        partner = application.organization.name if application.organization else None
        request_data.update(
            {
                "issue_date": date.today().isoformat(),
                "type": "expense",
                "partner_name": partner or "出張者",
                "details": [
                    {
                        "account_item_id": TRAVEL_ACCOUNT_ITEM_ID,
                        "tax_code": TAX_CODE_PURCHASE_8,
                        "amount": _json_amount(line.amount),
                        "description": line.description,
                    }
                    for line in lines
                ],
            }
        )
        return request_data

    def send(self, operation, request_data, reference=None):
        if operation == AccountingOperation.CREATE_ENTRY.value:
            return self._call("POST", self._deals_url(), request_data)
        if operation == AccountingOperation.UPDATE_ENTRY.value:
            return self._call("PUT", self._deals_url(reference), request_data)
        return self._call("DELETE", f"{self._deals_url(reference)}?company_id={request_data['company_id']}")

    def reference_from(self, response):
        deal = response.get("deal") if isinstance(response, dict) else None
        deal_id = (deal or {}).get("id") or (response or {}).get("id")
        return str(deal_id) if deal_id is not None else None


class MoneyForwardClient(AccountingClient):
    name = "moneyforward"

    def build_request(self, operation, application, lines, reference=None):
        return {
            "office_id": _credential(self.credentials, "office_id", "officeId"),
            "title": application.title,
            "amount": _json_amount(Decimal(str(application.total_amount or 0))),
            "expense_date": date.today().isoformat(),
            "category": "出張費" if application.type == ApplicationType.BUSINESS_TRIP else "経費",
            "description": application.description or "",
        }

    def send(self, operation, request_data, reference=None):
        base = current_app.config["MONEYFORWARD_API_URL"].rstrip("/")
        return self._call("POST", f"{base}/offices/{request_data['office_id']}/expenses", request_data)


class YayoiCsvClient(AccountingClient):
    """Yayoi imports journals from CSV, so no network call is made."""

    name = "yayoi"

    def build_request(self, operation, application, lines, reference=None):
        return {
            "application_id": application.id,
            "rows": [
                [
                    line.entry_date.isoformat(),
                    "旅費交通費",
                    line.category,
                    _json_amount(line.amount),
                    "現金",
                    "",
                    _json_amount(line.amount),
                    line.description,
                ]
                for line in lines
            ],
        }

    def send(self, operation, request_data, reference=None):
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(YAYOI_HEADER)
        writer.writerows(request_data["rows"])
        return {
            "message": "CSV data generated for Yayoi",
            "csv_data": buffer.getvalue().rstrip("\n"),
            "filename": f"expense_{request_data['application_id']}_{date.today().isoformat()}.csv",
        }


CLIENTS: Dict[str, Type[AccountingClient]] = {
    client.name: client for client in (FreeeClient, MoneyForwardClient, YayoiCsvClient)
}


def get_client(service: str, credentials: Dict[str, Any]) -> AccountingClient:
    client_cls = CLIENTS.get(service)
    if client_cls is None:
        raise ConfigurationError(f"Unsupported accounting service: {service}", service=service)
    return client_cls(credentials)


# ---------------------------------------------------------------------------
# Sync operations
# ---------------------------------------------------------------------------

def _last_reference(client: AccountingClient, application_id: str) -> Optional[str]:
    stmt = (
        select(AccountingIntegrationLog)
        .where(
            AccountingIntegrationLog.application_id == application_id,
            AccountingIntegrationLog.service_name == client.name,
            AccountingIntegrationLog.operation_type == AccountingOperation.CREATE_ENTRY.value,
            AccountingIntegrationLog.status == IntegrationStatus.SUCCESS,
        )
        .order_by(AccountingIntegrationLog.created_at.desc())
        .limit(1)
    )
    log = db.session.scalar(stmt)
    return client.reference_from(log.response_data or {}) if log else None


def _execute(log: AccountingIntegrationLog, application: Application) -> SyncResult:
    """Run one attempt and record its outcome on ``log`` (caller commits)."""
    service, operation = log.service_name, log.operation_type
    try:
        organization = application.organization
        credentials = organization.accounting_credentials(service) if organization else None
        if not credentials:
            raise ConfigurationError("Service credentials not configured", service=service)

        client = get_client(service, credentials)
        if operation not in client.operations:
            raise IntegrationFailure(f"Operation '{operation}' is not supported by {service}", service=service)

        reference = None
        if operation != AccountingOperation.CREATE_ENTRY.value:
            reference = _last_reference(client, application.id)
            if reference is None:
                raise IntegrationFailure(f"No {service} entry recorded for this application", service=service)

        log.request_data = client.build_request(operation, application, build_transaction_lines(application), reference)
        response = client.send(operation, log.request_data, reference)
    except ServiceError as exc:
        log.status = IntegrationStatus.FAILED
        log.error_message = exc.message
        logger.warning(f"Accounting sync failed for application {application.id} ({service}/{operation}): {exc.message}")
        return SyncResult(False, service, operation, log.id, error=exc.message)

    log.status = IntegrationStatus.SUCCESS
    log.response_data = response
    log.error_message = None
    logger.info(f"Accounting sync succeeded for application {application.id} ({service}/{operation})")
    return SyncResult(True, service, operation, log.id, response=response)


def sync_to_accounting(application_id: str, operation: str = AccountingOperation.CREATE_ENTRY.value) -> SyncResult:
    """Push one application to its organization's default accounting service."""
    try:
        operation = AccountingOperation(operation).value
    except ValueError:
        raise ValidationError(f"Unknown accounting operation '{operation}'.", field="operation") from None

    application = db.session.get(Application, application_id)
    if application is None:
        raise NotFoundError("Application not found.", application_id=application_id)

    settings = application.organization.accounting_settings() if application.organization else {}
    log = AccountingIntegrationLog(
        application_id=application.id,
        service_name=settings.get("default_service") or settings.get("defaultService") or DEFAULT_SERVICE,
        operation_type=operation,
        request_data={},
        response_data={},
        status=IntegrationStatus.PENDING,
        retry_count=0,
    )
    db.session.add(log)
    db.session.commit()

    result = _execute(log, application)
    db.session.commit()
    return result


def retry_sync(log_id: str) -> SyncResult:
    log = db.session.get(AccountingIntegrationLog, log_id)
    if log is None:
        raise NotFoundError("Integration log not found.", log_id=log_id)
    if log.status != IntegrationStatus.FAILED:
        raise InvalidStateError("Only failed syncs can be retried.", status=log.status.value)

    log.retry_count = (log.retry_count or 0) + 1
    log.last_retry_at = utcnow()
    result = _execute(log, log.application)
    db.session.commit()
    return result


def retry_failed_syncs(max_retries: Optional[int] = None) -> List[SyncResult]:
    """Retry every failed log below the retry ceiling. Used by the CLI."""
    if max_retries is None:
        max_retries = current_app.config["ACCOUNTING_MAX_RETRIES"]
    stmt = (
        select(AccountingIntegrationLog.id)
        .where(
            AccountingIntegrationLog.status == IntegrationStatus.FAILED,
            AccountingIntegrationLog.retry_count < max_retries,
        )
        .order_by(AccountingIntegrationLog.created_at)
    )
    results = [retry_sync(log_id) for log_id in db.session.scalars(stmt).all()]
    logger.info(f"Retried {len(results)} failed accounting syncs")
    return results


def list_integration_logs(
    actor: Actor,
    application_id: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 100,
) -> List[AccountingIntegrationLog]:
    if not actor.is_approver:
        raise PermissionDeniedError("Only managers and admins can view integration logs.")

    stmt = select(AccountingIntegrationLog).join(Application).where(
        Application.organization_id == actor.organization_id
    )
    if application_id:
        stmt = stmt.where(AccountingIntegrationLog.application_id == application_id)
    if status:
        try:
            stmt = stmt.where(AccountingIntegrationLog.status == IntegrationStatus(status))
        except ValueError:
            raise ValidationError(f"Unknown integration status '{status}'.", field="status") from None
    stmt = stmt.order_by(AccountingIntegrationLog.created_at.desc()).limit(limit)
    return list(db.session.scalars(stmt))


def get_integration_log(actor: Actor, log_id: str) -> AccountingIntegrationLog:
    log = db.session.get(AccountingIntegrationLog, log_id)
    if (
        log is None
        or not actor.is_approver
        or log.application is None
        or log.application.organization_id != actor.organization_id
    ):
        raise NotFoundError("Integration log not found.", log_id=log_id)
    return log


def _sync_in_context(app, application_id: str) -> None:
    with app.app_context():
        try:
            sync_to_accounting(application_id)
        except Exception:
            logger.exception(f"Background accounting sync crashed for application {application_id}")
            db.session.rollback()


def dispatch_sync(application_id: str) -> Optional[SyncResult]:
    """Start the sync for a freshly approved application.

    Runs on a daemon thread when ``ACCOUNTING_SYNC_ASYNC`` is set and returns
    None; otherwise runs inline and returns the result.
    """
    app = current_app._get_current_object()
    if app.config.get("ACCOUNTING_SYNC_ASYNC"):
        worker = threading.Thread(
            target=_sync_in_context,
            args=(app, application_id),
            name=f"accounting-sync-{application_id}",
            daemon=True,
        )
        worker.start()
        return None
    return sync_to_accounting(application_id)
