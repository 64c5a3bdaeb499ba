"""logger.py 单元测试"""

from __future__ import annotations

import json
import logging

from pkgsolve.utils.logger import JSONFormatter, reset_logging, setup_logging


class TestLogging:
    def test_json_formatter(self) -> None:
        record = logging.LogRecord("pkgsolve.test", logging.WARNING, __file__, 1, "解析 %s", ("foo",), None)
        entry = json.loads(JSONFormatter().format(record))
        assert entry["level"] == "WARNING"
        assert entry["logger"] == "pkgsolve.test"
        assert entry["message"] == "解析 foo"

    def test_setup_replaces_handlers(self) -> None:
        try:
            setup_logging("DEBUG")
            setup_logging("WARNING", json_output=True)
            root = logging.getLogger()
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, JSONFormatter)
            assert root.level == logging.WARNING
        finally:
            reset_logging()
            logging.getLogger().setLevel(logging.WARNING)
