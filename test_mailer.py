import httpx

import mailer
import tasks
from config import settings
from mailer import send_email as real_send_email


def test_render_email_escapes_and_links():
    html = mailer.render_email(
        title="Verify <now>",
        greeting="Hi A!",
        message="Please verify.",
        button_text="Verify Email",
        button_url="http://localhost/verify?id=1&token=abc",
    )
    assert "Verify &lt;now&gt;" in html
    assert 'href="http://localhost/verify?id=1&amp;token=abc"' in html


def test_send_email_skipped_when_not_configured(monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", None)
    assert real_send_email("a@x.com", "Subject", "Body") is False


def test_send_email_posts_to_resend(monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", "re_test")
    monkeypatch.setattr(settings, "RESEND_FROM", "library@example.com")
    captured = {}

    def fake_post(url, headers, json, timeout):
        captured.update(url=url, headers=headers, json=json)
        return httpx.Response(200, json={"id": "email_1"})

    monkeypatch.setattr(mailer.httpx, "post", fake_post)
    assert real_send_email("a@x.com", "Subject", "Body", "<p>Body</p>") is True
    assert captured["url"] == mailer.RESEND_URL
    assert captured["headers"]["Authorization"] == "Bearer re_test"
    assert captured["json"]["to"] == ["a@x.com"]
    assert captured["json"]["html"] == "<p>Body</p>"


def test_send_email_reports_provider_failure(monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", "re_test")
    monkeypatch.setattr(settings, "RESEND_FROM", "library@example.com")
    monkeypatch.setattr(mailer.httpx, "post", lambda *a, **kw: httpx.Response(500, text="boom"))
    assert real_send_email("a@x.com", "Subject", "Body") is False


def test_queue_email_runs_task_eagerly(outbox):
    tasks.queue_email("a@x.com", "Hello", "Body")
    assert outbox == [{"to": "a@x.com", "subject": "Hello", "text": "Body", "html": None}]
