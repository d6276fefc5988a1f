import logging

from reviewdesk.core.logging import PIISafeFilter


def test_pii_filter_redacts_email_and_phone(caplog):
    logger = logging.getLogger("test.pii")
    logger.setLevel(logging.INFO)
    logger.filters = []
    logger.addFilter(PIISafeFilter())

    with caplog.at_level(logging.INFO, logger="test.pii"):
        logger.info("Contact john.doe@example.com phone 98765 43210")

    assert "john.doe@example.com" not in caplog.text
    assert "98765 43210" not in caplog.text
    assert "[REDACTED]" in caplog.text


def test_pii_filter_redacts_args(caplog):
    logger = logging.getLogger("test.pii.args")
    logger.setLevel(logging.INFO)
    logger.filters = []
    logger.addFilter(PIISafeFilter())

    with caplog.at_level(logging.INFO, logger="test.pii.args"):
        logger.info("Account removed: %s", "carlos@example.com")

    assert "carlos@example.com" not in caplog.text


def test_pii_filter_redacts_free_text_assignment(caplog):
    logger = logging.getLogger("test.raw")
    logger.setLevel(logging.INFO)
    logger.filters = []
    logger.addFilter(PIISafeFilter())

    with caplog.at_level(logging.INFO, logger="test.raw"):
        logger.info("rejected review reason=private-detail for request d-1")

    assert "private-detail" not in caplog.text
    assert "reason=[REDACTED]" in caplog.text
