import logging

import pytest

from permitqr.logging.logger import Log, _ContextFormatter


class TestLog:
    def test_context_rendered_as_pairs(self) -> None:
        formatter = _ContextFormatter("%(levelname)s %(message)s")
        record = logging.LogRecord("permitqr", logging.INFO, __file__, 1, "Stamped", None, None)
        record.context = {"document": "KASUPDA-PERMIT-001", "stage": "stamp"}

        assert formatter.format(record) == "INFO Stamped document=KASUPDA-PERMIT-001 stage=stamp"

    def test_no_context(self) -> None:
        formatter = _ContextFormatter("%(message)s")
        record = logging.LogRecord("permitqr", logging.INFO, __file__, 1, "plain", None, None)

        assert formatter.format(record) == "plain"

    def test_messages_reach_permitqr_logger(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="permitqr"):
            Log.warning("Document stuck", document="X")

        assert caplog.records[-1].getMessage() == "Document stuck"
        assert caplog.records[-1].context == {"document": "X"}  # type: ignore[attr-defined]

    def test_configure_adds_single_handler(self) -> None:
        logger = logging.getLogger("permitqr")
        before = list(logger.handlers)
        try:
            Log.configure("debug")
            Log.configure("info")
            added = [h for h in logger.handlers if h not in before]
            assert len(added) <= 1
            assert logger.level == logging.INFO
        finally:
            for handler in [h for h in logger.handlers if h not in before]:
                logger.removeHandler(handler)
            logger.setLevel(logging.NOTSET)
