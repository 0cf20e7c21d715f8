"""Accounting adapters, integration logging and retries."""
from unittest import mock

import pytest

from seisan import db
from seisan.models import AccountingIntegrationLog, IntegrationStatus, Organization
from seisan.services import accounting_service, application_service
from seisan.services.errors import InvalidStateError, PermissionDeniedError

REQUEST = "seisan.services.accounting_service.requests.request"


def ok_response(payload, status=201):
    response = mock.Mock(ok=True, status_code=status, content=b"{...}", text="")
    response.json.return_value = payload
    return response


def error_response(status, text):
    return mock.Mock(ok=False, status_code=status, content=text.encode(), text=text)


def use_service(organization, service, credentials):
    organization.settings = {
        "accounting": {"default_service": service, "services": {service: credentials}}
    }
    db.session.commit()


def test_trip_lines_skip_zero_estimates(employee_actor, trip_payload):
    trip_payload["estimated_accommodation"] = 0
    application = application_service.create_application(
        employee_actor, "business_trip", "出張", {"trip": trip_payload}
    )
    lines = accounting_service.build_transaction_lines(application)
    assert [(line.category, int(line.amount)) for line in lines] == [("出張日当", 15000), ("交通費", 22500)]
    assert lines[0].description == "出張日当 - 顧客訪問"


def test_expense_lines_one_per_item(expense_application):
    lines = accounting_service.build_transaction_lines(expense_application)
    assert sorted(int(line.amount) for line in lines) == [3000, 4500]
    assert {line.description for line in lines} == {"タクシー", "会食"}


def test_freee_create_posts_deal(app, expense_application):
    with mock.patch(REQUEST, return_value=ok_response({"deal": {"id": 77}})) as call:
        result = accounting_service.sync_to_accounting(expense_application.id)

    assert result.success is True
    assert result.service == "freee"
    method, url = call.call_args.args
    assert method == "POST"
    assert url == "https://api.freee.co.jp/api/1/deals"
    body = call.call_args.kwargs["json"]
    assert body["company_id"] == 4242
    assert body["type"] == "expense"
    assert body["partner_name"] == "賢者商事"
    assert sorted(d["amount"] for d in body["details"]) == [3000, 4500]
    assert {d["account_item_id"] for d in body["details"]} == {123}
    assert call.call_args.kwargs["headers"]["Authorization"] == "Bearer token-123"
    assert call.call_args.kwargs["timeout"] == app.config["EXTERNAL_HTTP_TIMEOUT"]

    log = db.session.get(AccountingIntegrationLog, result.log_id)
    assert log.status == IntegrationStatus.SUCCESS
    assert log.response_data == {"deal": {"id": 77}}
    assert log.request_data["company_id"] == 4242


def test_freee_update_uses_created_deal_id(expense_application):
    with mock.patch(REQUEST, return_value=ok_response({"deal": {"id": 77}})):
        accounting_service.sync_to_accounting(expense_application.id)
    with mock.patch(REQUEST, return_value=ok_response({"deal": {"id": 77}}, status=200)) as call:
        result = accounting_service.sync_to_accounting(expense_application.id, "update_entry")

    assert result.success is True
    assert call.call_args.args == ("PUT", "https://api.freee.co.jp/api/1/deals/77")


def test_update_without_prior_entry_fails(expense_application):
    result = accounting_service.sync_to_accounting(expense_application.id, "update_entry")
    assert result.success is False
    assert "No freee entry" in result.error


def test_http_error_is_logged_not_raised(expense_application):
    with mock.patch(REQUEST, return_value=error_response(500, "boom")):
        result = accounting_service.sync_to_accounting(expense_application.id)

    assert result.success is False
    log = db.session.get(AccountingIntegrationLog, result.log_id)
    assert log.status == IntegrationStatus.FAILED
    assert log.error_message == "freee API error: 500 - boom"


def test_missing_credentials_write_failed_log(organization, expense_application):
    organization.settings = {}
    db.session.commit()

    result = accounting_service.sync_to_accounting(expense_application.id)

    assert result.success is False
    log = AccountingIntegrationLog.query.one()
    assert log.service_name == "freee"
    assert log.status == IntegrationStatus.FAILED
    assert log.error_message == "Service credentials not configured"


def test_unknown_service_fails_cleanly(organization, expense_application):
    use_service(organization, "quickbooks", {"token": "x"})
    result = accounting_service.sync_to_accounting(expense_application.id)
    assert result.success is False
    assert result.error == "Unsupported accounting service: quickbooks"


def test_moneyforward_posts_expense(organization, expense_application):
    use_service(organization, "moneyforward", {"access_token": "mf", "office_id": "OFF1"})
    with mock.patch(REQUEST, return_value=ok_response({"id": "e-1"})) as call:
        result = accounting_service.sync_to_accounting(expense_application.id)

    assert result.success is True
    method, url = call.call_args.args
    assert method == "POST"
    assert url.endswith("/offices/OFF1/expenses")
    body = call.call_args.kwargs["json"]
    assert body["amount"] == 7500
    assert body["category"] == "経費"
    assert body["title"] == "大阪出張 経費"


def test_moneyforward_rejects_delete(organization, expense_application):
    use_service(organization, "moneyforward", {"access_token": "mf", "office_id": "OFF1"})
    result = accounting_service.sync_to_accounting(expense_application.id, "delete_entry")
    assert result.success is False
    assert "not supported" in result.error


def test_yayoi_generates_csv_without_network(organization, expense_application):
    use_service(organization, "yayoi", {"enabled": True})
    result = accounting_service.sync_to_accounting(expense_application.id)

    assert result.success is True
    rows = result.response["csv_data"].split("\n")
    assert rows[0] == '"取引日","借方勘定科目","借方補助科目","借方金額","貸方勘定科目","貸方補助科目","貸方金額","摘要"'
    assert len(rows) == 3
    assert '"2026-10-01","旅費交通費","経費","3000","現金","","3000","タクシー"' in rows
    assert result.response["filename"].startswith(f"expense_{expense_application.id}_")


def test_retry_failed_log(expense_application):
    failed = accounting_service.sync_to_accounting(expense_application.id)
    assert failed.success is False

    with mock.patch(REQUEST, return_value=ok_response({"deal": {"id": 5}})):
        retried = accounting_service.retry_sync(failed.log_id)

    assert retried.success is True
    assert retried.log_id == failed.log_id
    log = db.session.get(AccountingIntegrationLog, failed.log_id)
    assert log.status == IntegrationStatus.SUCCESS
    assert log.retry_count == 1
    assert log.last_retry_at is not None
    assert log.error_message is None

    with pytest.raises(InvalidStateError):
        accounting_service.retry_sync(failed.log_id)


def test_retry_failed_syncs_respects_ceiling(expense_application):
    first = accounting_service.sync_to_accounting(expense_application.id)
    accounting_service.retry_sync(first.log_id)
    second = accounting_service.sync_to_accounting(expense_application.id)

    results = accounting_service.retry_failed_syncs(max_retries=1)

    assert [r.log_id for r in results] == [second.log_id]
    assert db.session.get(AccountingIntegrationLog, first.log_id).retry_count == 1
    assert db.session.get(AccountingIntegrationLog, second.log_id).retry_count == 1


def test_retry_cli_command(app, expense_application):
    accounting_service.sync_to_accounting(expense_application.id)
    runner = app.test_cli_runner()

    with mock.patch(REQUEST, return_value=ok_response({"deal": {"id": 8}})):
        result = runner.invoke(args=["accounting", "retry-failed"])

    assert result.exit_code == 0, result.output
    assert "1/1 syncs succeeded." in result.output


def test_integration_logs_visible_to_approvers_only(manager_actor, employee_actor, outsider, expense_application):
    from seisan.services.context import Actor
    accounting_service.sync_to_accounting(expense_application.id)

    assert len(accounting_service.list_integration_logs(manager_actor)) == 1
    assert len(accounting_service.list_integration_logs(manager_actor, status="failed")) == 1
    assert accounting_service.list_integration_logs(Actor.from_user(outsider)) == []
    with pytest.raises(PermissionDeniedError):
        accounting_service.list_integration_logs(employee_actor)


def test_dispatch_runs_inline_when_async_disabled(app, expense_application):
    assert app.config["ACCOUNTING_SYNC_ASYNC"] is False
    result = accounting_service.dispatch_sync(expense_application.id)
    assert result is not None
    assert Organization.query.count() == 1
