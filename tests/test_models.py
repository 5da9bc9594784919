"""Tests for request and wire-format models."""

import pytest
from pydantic import ValidationError

from lms_email.models import (
    EmailDetails,
    Priority,
    Result,
    SisMessage,
    SisRecipient,
)


class TestEmailDetails:
    def test_accepts_camel_case_payload(self):
        details = EmailDetails.model_validate({
            "subject": "Hi",
            "body": "Body",
            "recipients": ["a@iu.edu"],
            "emailServiceAttachmentList": [{"filename": "a.txt", "url": "https://x/a.txt"}],
            "enableHtml": True,
            "priority": "HIGH",
            "from": "instructor@iu.edu",
        })
        assert details.enable_html is True
        assert details.priority is Priority.HIGH
        assert details.from_ == "instructor@iu.edu"
        assert details.attachments[0].filename == "a.txt"

    def test_accepts_field_names(self):
        details = EmailDetails(recipients=["a@iu.edu"], enable_html=True, from_="x@iu.edu")
        assert details.enable_html is True
        assert details.from_ == "x@iu.edu"

    def test_defaults(self):
        details = EmailDetails()
        assert details.recipients == []
        assert details.attachments == []
        assert details.priority is None
        assert details.from_ is None
        assert details.enable_html is False

    def test_rejects_unknown_priority(self):
        with pytest.raises(ValidationError):
            EmailDetails(priority="URGENT")


def test_x_priority_values():
    assert Priority.HIGH.x_priority == 1
    assert Priority.NORMAL.x_priority == 3
    assert Priority.LOW.x_priority == 5


def test_sis_message_payload_drops_nulls():
    message = SisMessage(subject="S", recipients=[SisRecipient(address="a@iu.edu")])
    payload = message.to_payload()
    assert "from" not in payload
    assert payload["priority"] == "NORMAL"
    assert payload["contentType"] == "text/plain"
    assert payload["attach"] == []


def test_result_ignores_unknown_fields():
    result = Result.model_validate({"success": True, "messageId": "123"})
    assert result.success is True
    assert Result().success is False
