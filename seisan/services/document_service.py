"""Document generation: trip reports, settlement sheets, allowance statements.

HTML is rendered locally with Jinja; PDF and Word output is produced by the
remote document service at ``DOCUMENT_SERVICE_URL``.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Tuple

import requests
from flask import current_app, render_template_string
from sqlalchemy import select

from seisan import db
from seisan.models import (
    Application,
    ApplicationStatus,
    ApplicationType,
    GeneratedDocument,
    Organization,
    TravelRegulation,
    User,
)
from seisan.services.application_service import get_application, parse_date
from seisan.services.audit_service import json_safe, write_audit_log
from seisan.services.context import Actor
from seisan.services.errors import (
    ConfigurationError,
    IntegrationFailure,
    NotFoundError,
    ValidationError,
)
from seisan.services.regulation_service import get_active_regulation, get_regulation
from seisan.services.storage_service import build_object_key, save_object

logger = logging.getLogger(__name__)

MIME_TYPES = {
    "html": "text/html",
    "pdf": "application/pdf",
    "word": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}
EXTENSIONS = {"html": "html", "pdf": "pdf", "word": "docx"}
APPLICATION_DOCUMENT_TYPES = ("business_report", "expense_settlement")
DOCUMENT_TYPES = APPLICATION_DOCUMENT_TYPES + ("allowance_detail", "travel_regulation")

_BASE_STYLE = """
<style>
  body { font-family: 'Noto Sans JP', Arial, sans-serif; line-height: 1.6; margin: 40px; }
  .header { text-align: center; margin-bottom: 30px; }
  .title { font-size: 24px; font-weight: bold; margin-bottom: 10px; }
  .subtitle { font-size: 14px; color: #666; }
  .section-title { font-size: 18px; font-weight: bold; margin-bottom: 10px; border-bottom: 2px solid #333; }
  .table { width: 100%; border-collapse: collapse; margin-bottom: 15px; }
  .table th, .table td { border: 1px solid #ddd; padding: 8px; text-align: left; }
  .table th { background: #f5f5f5; font-weight: bold; }
  .total { font-size: 18px; font-weight: bold; text-align: right; margin-top: 15px; }
</style>
"""

_TEMPLATES = {
    "business_report": """<!DOCTYPE html>
<html><head><meta charset="UTF-8"><title>{{ d.title }}</title>{{ style|safe }}</head>
<body>
  <div class="header"><div class="title">{{ d.title }}</div>
    <div class="subtitle">作成日: {{ d.generated_at[:10] }}</div></div>
  <div class="section-title">基本情報</div>
  <table class="table">
    <tr><th>申請者</th><td>{{ d.applicant }}</td><th>所属</th><td>{{ d.department or '' }}</td></tr>
    <tr><th>役職</th><td>{{ d.position or '' }}</td><th>組織</th><td>{{ d.organization or '' }}</td></tr>
    <tr><th>出張先</th><td>{{ d.destination or '' }}</td><th>期間</th><td>{{ d.start_date }} ～ {{ d.end_date }}</td></tr>
  </table>
  <div class="section-title">出張目的</div><p>{{ d.purpose }}</p>
  <div class="section-title">報告内容</div><p>{{ d.report_content or '' }}</p>
  <div class="total">合計金額: ¥{{ '{:,.0f}'.format(d.total_amount) }}</div>
</body></html>""",
    "expense_settlement": """<!DOCTYPE html>
<html><head><meta charset="UTF-8"><title>{{ d.title }}</title>{{ style|safe }}</head>
<body>
  <div class="header"><div class="title">{{ d.title }}</div>
    <div class="subtitle">作成日: {{ d.generated_at[:10] }}</div></div>
  <table class="table">
    <tr><th>申請者</th><td>{{ d.applicant }}</td><th>所属</th><td>{{ d.department or '' }}</td></tr>
    <tr><th>申請日</th><td>{{ (d.submitted_at or '')[:10] }}</td><th>承認日</th><td>{{ (d.approved_at or '')[:10] }}</td></tr>
  </table>
  <div class="section-title">経費明細</div>
  <table class="table">
    <tr><th>日付</th><th>科目</th><th>内容</th><th>金額</th></tr>
    {% for item in d.expense_items %}
    <tr><td>{{ item.date }}</td><td>{{ item.category or '' }}</td><td>{{ item.description or '' }}</td>
      <td>¥{{ '{:,.0f}'.format(item.amount) }}</td></tr>
    {% endfor %}
  </table>
  <div class="total">合計金額: ¥{{ '{:,.0f}'.format(d.total_amount) }}</div>
</body></html>""",
    "allowance_detail": """<!DOCTYPE html>
<html><head><meta charset="UTF-8"><title>{{ d.title }}</title>{{ style|safe }}</head>
<body>
  <div class="header"><div class="title">{{ d.title }}</div>
    <div class="subtitle">{{ d.applicant }} {{ d.position or '' }}</div></div>
  <table class="table">
    <tr><th>出張日</th><th>出張先</th><th>日数</th><th>日当</th></tr>
    {% for trip in d.trips %}
    <tr><td>{{ trip.date }}</td><td>{{ trip.destination }}</td><td>{{ trip.days }}</td>
      <td>¥{{ '{:,.0f}'.format(trip.allowance) }}</td></tr>
    {% endfor %}
  </table>
  <div class="total">日当合計: ¥{{ '{:,.0f}'.format(d.total_allowance) }}</div>
</body></html>""",
    "travel_regulation": """<!DOCTYPE html>
<html><head><meta charset="UTF-8"><title>{{ d.title }}</title>{{ style|safe }}</head>
<body>
  <div class="header"><div class="title">{{ d.title }}</div>
    <div class="subtitle">{{ d.company_name }} {{ d.version }} 作成日: {{ d.generated_at[:10] }}</div></div>
  {% if d.company_info %}
  <div class="section-title">会社情報</div>
  <table class="table">
    {% for row in d.company_info %}<tr><th>{{ row.label }}</th><td>{{ row.value }}</td></tr>{% endfor %}
  </table>
  {% endif %}
  <div class="section-title">規程条文</div>
  {% for article in d.articles %}
  <p><strong>{{ article.title }}</strong><br>{{ article.content }}</p>
  {% else %}
  <p>条文は登録されていません。</p>
  {% endfor %}
  <div class="section-title">日当・宿泊費</div>
  <table class="table">
    <tr><th>区分</th><th>設定</th></tr>
    {% for row in d.allowance_settings %}<tr><td>{{ row.label }}</td><td>{{ row.value }}</td></tr>{% endfor %}
  </table>
</body></html>""",
}


def _applicant_fields(user: Optional[User]) -> Dict[str, Any]:
    return {
        "applicant": user.full_name if user else "",
        "position": user.position if user else None,
        "department": user.department if user else None,
    }


def business_report_data(application: Application) -> Dict[str, Any]:
    if application.type != ApplicationType.BUSINESS_TRIP:
        raise ValidationError("Business reports are only available for business trips.", field="type")
    trip = application.trip_detail
    data = {
        "title": f"出張報告書 - {application.title}",
        "organization": application.organization.name if application.organization else None,
        "destination": trip.destination if trip else None,
        "purpose": trip.purpose if trip else "",
        "start_date": trip.start_date if trip else "",
        "end_date": trip.end_date if trip else "",
        "report_content": trip.report_content if trip else "",
        "total_amount": application.total_amount,
        "generated_at": datetime.now(),
    }
    data.update(_applicant_fields(application.owner))
    return json_safe(data)


def expense_settlement_data(application: Application) -> Dict[str, Any]:
    data = {
        "title": f"旅費精算書 - {application.title}",
        "organization": application.organization.name if application.organization else None,
        "expense_items": [item.to_dict() for item in application.expense_items],
        "total_amount": application.total_amount,
        "submitted_at": application.submitted_at,
        "approved_at": application.approved_at,
        "generated_at": datetime.now(),
    }
    data.update(_applicant_fields(application.owner))
    return json_safe(data)


def allowance_detail_data(organization_id: Optional[str], user: User, start: date, end: date) -> Dict[str, Any]:
    """Approved trips of ``user`` created within ``start``..``end`` inclusive."""
    stmt = (
        select(Application)
        .where(
            Application.organization_id == organization_id,
            Application.user_id == user.id,
            Application.type == ApplicationType.BUSINESS_TRIP,
            Application.status == ApplicationStatus.APPROVED,
            Application.deleted_at.is_(None),
            Application.created_at >= datetime.combine(start, time.min),
            Application.created_at < datetime.combine(end + timedelta(days=1), time.min),
        )
        .order_by(Application.created_at)
    )
    trips = []
    for application in db.session.scalars(stmt):
        detail = application.trip_detail
        trips.append(
            {
                "date": detail.start_date if detail else application.created_at.date(),
                "destination": (detail.destination if detail else None) or "不明",
                "days": detail.days if detail else 0,
                "allowance": detail.actual_daily_allowance if detail else 0,
            }
        )
    data = {
        "title": f"日当支給明細書 - {start.isoformat()} ～ {end.isoformat()}",
        "period": {"start_date": start, "end_date": end},
        "trips": trips,
        "total_allowance": sum(float(trip["allowance"] or 0) for trip in trips),
        "generated_at": datetime.now(),
    }
    data.update(_applicant_fields(user))
    return json_safe(data)


def _describe(value: Any) -> str:
    if isinstance(value, dict):
        return "、".join(f"{key}: {_describe(item)}" for key, item in value.items())
    if isinstance(value, list):
        return "、".join(_describe(item) for item in value)
    return "" if value is None else str(value)


def _labelled_rows(value: Any) -> List[Dict[str, str]]:
    if isinstance(value, dict):
        return [{"label": str(key), "value": _describe(item)} for key, item in value.items()]
    if isinstance(value, list):
        return [{"label": str(index), "value": _describe(item)} for index, item in enumerate(value, 1)]
    return []


def _article_rows(articles: Any) -> List[Dict[str, str]]:
    """Articles stored either as ``{title: text}`` or as a list of strings/objects."""
    if isinstance(articles, dict):
        return [{"title": str(key), "content": _describe(text)} for key, text in articles.items()]
    rows = []
    for number, article in enumerate(articles or [], 1):
        if isinstance(article, dict):
            rows.append(
                {
                    "title": str(article.get("title") or f"第{number}条"),
                    "content": _describe(article.get("content", article.get("text", ""))),
                }
            )
        else:
            rows.append({"title": f"第{number}条", "content": _describe(article)})
    return rows


def travel_regulation_data(organization: Optional[Organization], regulation: TravelRegulation) -> Dict[str, Any]:
    company_name = organization.name if organization else ""
    data = {
        "title": f"出張旅費規程 - {company_name}",
        "regulation_id": regulation.id,
        "name": regulation.name,
        "company_name": company_name,
        "version": regulation.version or "v1.0",
        "company_info": _labelled_rows(regulation.company_info),
        "articles": _article_rows(regulation.articles),
        "allowance_settings": _labelled_rows(regulation.allowance_settings),
        "generated_at": datetime.now(),
    }
    return json_safe(data)


def render_html(doc_type: str, data: Dict[str, Any]) -> str:
    return render_template_string(_TEMPLATES[doc_type], d=data, style=_BASE_STYLE)


def render_remote(doc_type: str, data: Dict[str, Any], fmt: str) -> bytes:
    url = current_app.config.get("DOCUMENT_SERVICE_URL")
    if not url:
        raise ConfigurationError("Document service is not configured.", service="documents")
    try:
        response = requests.post(
            url,
            json={"type": doc_type, "format": fmt, "data": data},
            timeout=current_app.config["EXTERNAL_HTTP_TIMEOUT"],
        )
        response.raise_for_status()
    except requests.RequestException as exc:
        raise IntegrationFailure(f"Document generation failed: {exc}", service="documents") from exc
    return response.content


def render_document(doc_type: str, data: Dict[str, Any], fmt: str) -> Tuple[bytes, str]:
    if doc_type not in DOCUMENT_TYPES:
        raise ValidationError(f"Unsupported document type '{doc_type}'.", field="type")
    if fmt not in MIME_TYPES:
        raise ValidationError(f"Unsupported format '{fmt}'.", field="format")
    if fmt == "html":
        return render_html(doc_type, data).encode("utf-8"), MIME_TYPES[fmt]
    return render_remote(doc_type, data, fmt), MIME_TYPES[fmt]


def _store(
    actor: Actor,
    doc_type: str,
    fmt: str,
    data: Dict[str, Any],
    application: Optional[Application] = None,
) -> GeneratedDocument:
    content, mime_type = render_document(doc_type, data, fmt)
    path = save_object(
        "documents",
        build_object_key(actor.user_id, f"{doc_type}.{EXTENSIONS[fmt]}"),
        content,
        mime_type,
    )
    document = GeneratedDocument(
        organization_id=actor.organization_id,
        application_id=application.id if application else None,
        created_by=actor.user_id,
        type=doc_type,
        title=data.get("title") or doc_type,
        file_url=path,
        file_size=len(content),
        mime_type=mime_type,
        status="completed",
        content=data,
    )
    db.session.add(document)
    db.session.flush()
    write_audit_log(actor, "document.generate", document, new_values=document.to_dict())
    db.session.commit()
    logger.info(f"Generated {doc_type} ({fmt}) at {path}")
    return document


def generate_application_document(
    actor: Actor, application_id: str, doc_type: str, fmt: str = "html"
) -> GeneratedDocument:
    application = get_application(actor, application_id)
    if doc_type == "business_report":
        data = business_report_data(application)
    elif doc_type == "expense_settlement":
        data = expense_settlement_data(application)
    else:
        raise ValidationError(f"'{doc_type}' cannot be generated for a single application.", field="type")
    return _store(actor, doc_type, fmt, data, application)


def generate_allowance_detail(
    actor: Actor, user_id: Optional[str], start_date: Any, end_date: Any, fmt: str = "html"
) -> GeneratedDocument:
    """Allowance statement for one user; approvers may request any member."""
    start = parse_date(start_date, "start_date")
    end = parse_date(end_date, "end_date")
    if end < start:
        raise ValidationError("'end_date' must not be before 'start_date'.", field="end_date")

    user = db.session.get(User, user_id or actor.user_id)
    if user is None or not actor.can_view(user.id, user.organization_id):
        raise NotFoundError("User not found.", user_id=user_id)
    return _store(actor, "allowance_detail", fmt, allowance_detail_data(actor.organization_id, user, start, end))


def generate_regulation_document(
    actor: Actor, regulation_id: Optional[str] = None, fmt: str = "html"
) -> GeneratedDocument:
    """Render a regulation; without an id, the organization's active one."""
    if regulation_id:
        regulation = get_regulation(actor, regulation_id)
    else:
        regulation = get_active_regulation(actor.organization_id)
        if regulation is None:
            raise NotFoundError("No active travel regulation.", organization_id=actor.organization_id)
    organization = db.session.get(Organization, regulation.organization_id)
    return _store(actor, "travel_regulation", fmt, travel_regulation_data(organization, regulation))
