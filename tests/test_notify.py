import requests

import main
from conftest import FakeResponse, FakeSession
from notify import SENDGRID_URL, Notifier, format_contact_email

SUBMISSION = {"id": "abc", "name": "Ana <b>", "email": "ana@gmail.com", "message": "Need a reel & logo"}


def mail_settings(settings):
    return settings.model_copy(update={
        "sendgrid_api_key": "SG.key",
        "email_from": "site@agency.io",
        "contact_notify_email": "owner@agency.io",
    })


def test_format_escapes_html():
    content = format_contact_email(SUBMISSION)
    assert content["subject"] == "New Contact Form Submission - Ana <b>"
    assert "Ana &lt;b&gt;" in content["html"]
    assert "reel &amp; logo" in content["html"]
    assert "Message: Need a reel & logo" in content["text"]


def test_sends_to_operator(settings):
    session = FakeSession(FakeResponse(202))
    assert Notifier(mail_settings(settings), session=session).send_contact_notification(SUBMISSION) is True
    url, kwargs = session.posts[0]
    assert url == SENDGRID_URL
    assert kwargs["json"]["personalizations"][0]["to"] == [{"email": "owner@agency.io"}]
    assert kwargs["headers"]["Authorization"] == "Bearer SG.key"


def test_unconfigured_is_skipped(settings):
    session = FakeSession(FakeResponse(202))
    assert Notifier(settings, session=session).send_contact_notification(SUBMISSION) is False
    assert session.posts == []


def test_failures_return_false(settings):
    for session in (FakeSession(error=requests.ConnectionError("smtp down")), FakeSession(FakeResponse(401, text="denied"))):
        assert Notifier(mail_settings(settings), session=session).send_contact_notification(SUBMISSION) is False


def test_contact_survives_email_failure(api, store, settings):
    failing = Notifier(mail_settings(settings), session=FakeSession(error=requests.ConnectionError("down")))
    main.app.dependency_overrides[main.get_notifier] = lambda: failing
    r = api.post("/api/contact", json={"name": "Ana", "email": "ana@gmail.com", "message": "Hi"})
    assert r.status_code == 200
    assert len(store.list_contact_submissions()) == 1
