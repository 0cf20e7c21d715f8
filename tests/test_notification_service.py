"""Notification inbox and delivery channels."""
from datetime import timedelta
from unittest import mock

import pytest

from seisan import db, mail
from seisan.models import Notification
from seisan.models.base import utcnow
from seisan.services import notification_service
from seisan.services.context import Actor
from seisan.services.errors import NotFoundError, ValidationError


@pytest.fixture
def inbox(employee):
    return [
        notification_service.notify(employee.id, "approval", f"通知{n}", "本文")
        for n in range(3)
    ]


def test_notify_persists_unread(employee_actor, inbox):
    assert notification_service.unread_count(employee_actor) == 3
    assert {n.title for n in notification_service.list_notifications(employee_actor)} == {"通知0", "通知1", "通知2"}


def test_mark_read_is_idempotent(employee_actor, inbox):
    first = notification_service.mark_read(employee_actor, inbox[0].id)
    read_at = first.read_at
    assert first.read is True
    assert read_at is not None

    again = notification_service.mark_read(employee_actor, inbox[0].id)
    assert again.read_at == read_at
    assert notification_service.unread_count(employee_actor) == 2


def test_mark_all_read(employee_actor, inbox):
    notification_service.mark_read(employee_actor, inbox[0].id)
    assert notification_service.mark_all_read(employee_actor) == 2
    assert notification_service.unread_count(employee_actor) == 0
    assert notification_service.list_notifications(employee_actor, unread_only=True) == []


def test_cannot_touch_someone_elses_notification(manager, inbox):
    other = Actor.from_user(manager)
    with pytest.raises(NotFoundError):
        notification_service.mark_read(other, inbox[0].id)
    with pytest.raises(NotFoundError):
        notification_service.delete_notification(other, inbox[0].id)
    assert Notification.query.count() == 3


def test_delete_notification(employee_actor, inbox):
    notification_service.delete_notification(employee_actor, inbox[1].id)
    assert db.session.get(Notification, inbox[1].id) is None
    assert notification_service.unread_count(employee_actor) == 2


def test_list_since_returns_only_newer(employee_actor, inbox):
    assert len(notification_service.list_notifications(employee_actor, since=utcnow() - timedelta(minutes=5))) == 3
    assert notification_service.list_notifications(employee_actor, since=utcnow() + timedelta(minutes=5)) == []


def test_unknown_category_is_rejected(employee):
    with pytest.raises(ValidationError):
        notification_service.notify(employee.id, "marketing", "x", "y")
    assert Notification.query.count() == 0


def test_push_failure_keeps_notification(app, monkeypatch, employee):
    monkeypatch.setitem(app.config, "PUSH_SERVICE_URL", "https://push.example.test/send")

    notification = notification_service.notify(employee.id, "system", "メンテナンス", "今夜実施", channels=["push"])

    assert db.session.get(Notification, notification.id) is not None
    results = notification_service.deliver_channels(employee.id, "t", "m", channels=["push"])
    assert results == {"push": False}


def test_push_without_gateway_is_reported(employee):
    assert notification_service.deliver_channels(employee.id, "t", "m", channels=["push"]) == {"push": False}


def test_push_success(app, monkeypatch, employee):
    monkeypatch.setitem(app.config, "PUSH_SERVICE_URL", "https://push.example.test/send")
    response = mock.Mock()
    response.json.return_value = {"status": "queued"}
    with mock.patch("seisan.services.push_service.requests.post", return_value=response) as post:
        results = notification_service.deliver_channels(employee.id, "承認", "承認されました", channels=["push"])

    assert results == {"push": True}
    payload = post.call_args.kwargs["json"]
    assert payload["user_id"] == employee.id
    assert payload["title"] == "承認"


def test_email_channel_renders_template(employee):
    data = {"application_title": "大阪出張", "amount": 52500, "decided_at": "2026-10-18 10:00"}
    with mail.record_messages() as outbox:
        results = notification_service.deliver_channels(
            employee.id, "申請承認", "承認されました", data,
            channels=["email"], template_id="application_approved",
        )

    assert results == {"email": True}
    assert len(outbox) == 1
    message = outbox[0]
    assert message.recipients == [employee.email]
    assert message.subject == "【賢者の精算】申請が承認されました - 大阪出張"
    assert "¥52,500" in message.html
    assert "金額: ¥52,500" in message.body


def test_unknown_channels_are_ignored(employee):
    assert notification_service.deliver_channels(employee.id, "t", "m", channels=["sms"]) == {}
