"""
Test suite for logging setup and token redaction.

Run tests:
    pytest tests/core/test_logger.py -v
"""

import logging
from uuid import uuid4

from app.core.logger import (
    REDACTED,
    TokenRedactingFormatter,
    _scrub_event,
    init_sentry,
    redact_invitation_tokens,
    setup_logger,
)
from app.core.utils import generate_invitation_token


class TestRedaction:

    def test_token_in_path_is_masked(self):
        token = generate_invitation_token()

        redacted = redact_invitation_tokens(f"POST /api/invitations/{token}/accept")

        assert token not in redacted
        assert redacted == f"POST /api/invitations/{REDACTED}/accept"

    def test_invitation_ids_stay_visible(self):
        path = f"/api/invitations/{uuid4()}/cancel"

        assert redact_invitation_tokens(path) == path

    def test_formatter_masks_messages(self):
        token = generate_invitation_token()
        record = logging.LogRecord(
            "request_logger", logging.INFO, __file__, 1,
            "AppException on /api/invitations/%s: gone", (token,), None,
        )

        output = TokenRedactingFormatter("%(message)s").format(record)

        assert token not in output

    def test_sentry_events_are_scrubbed(self):
        token = generate_invitation_token()
        event = {
            "request": {"url": f"http://test/api/invitations/{token}"},
            "breadcrumbs": {"values": [{"message": f"GET /invitations/{token}"}]},
            "logentry": {"message": f"failed on /invitations/{token}/decline"},
        }

        scrubbed = _scrub_event(event, {})

        assert token not in str(scrubbed)


class TestSetupLogger:

    def test_writes_to_file(self, tmp_path):
        log_file = tmp_path / "logs" / "workspace.log"

        logger = setup_logger(f"test_logger_{uuid4().hex}", str(log_file))
        logger.info("workspace archived")
        for handler in logger.handlers:
            handler.flush()

        assert "workspace archived" in log_file.read_text(encoding="utf-8")

    def test_repeated_setup_does_not_duplicate_handlers(self, tmp_path):
        name = f"test_logger_{uuid4().hex}"

        first = setup_logger(name, str(tmp_path / "a.log"))
        second = setup_logger(name, str(tmp_path / "a.log"))

        assert first is second
        assert len(second.handlers) == 2


class TestInitSentry:

    def test_empty_dsn_disables_sentry(self):
        assert init_sentry("") is False
