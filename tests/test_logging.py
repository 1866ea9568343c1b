import io
import logging
from unittest.mock import patch

import pytest

from gitrisk import InMemoryHistoryStore, ProjectHistory
from gitrisk.logging import (
    add_file_handler,
    add_stream_handler,
    get_logger,
    logger,
    remove_all_handlers,
    set_log_level,
)


@pytest.fixture(autouse=True)
def clean_logger():
    original_level = logger.level
    remove_all_handlers()
    yield
    remove_all_handlers()
    logger.setLevel(original_level)


class TestGetLogger:
    def test_without_name(self):
        assert get_logger() is logger
        assert logger.name == "gitrisk"

    def test_child_logger(self):
        child = get_logger("coupling")
        assert child.name == "gitrisk.coupling"
        assert child.parent is logger

    def test_nested_child(self):
        get_logger("store")
        nested = get_logger("store.git")
        assert nested.name == "gitrisk.store.git"
        assert nested.parent is get_logger("store")

    def test_null_handler_by_default(self):
        assert any(isinstance(h, logging.NullHandler) for h in logger.handlers)


class TestSetLogLevel:
    @pytest.mark.parametrize("level,expected", [("INFO", logging.INFO), (logging.DEBUG, logging.DEBUG), (25, 25)])
    def test_levels(self, level, expected):
        set_log_level(level)
        assert logger.level == expected


class TestAddStreamHandler:
    def test_defaults(self):
        add_stream_handler()
        handler = logger.handlers[-1]
        assert type(handler) is logging.StreamHandler
        assert handler.level == logging.INFO

    def test_custom_level_and_format(self):
        add_stream_handler(level="ERROR", format_string="%(levelname)s: %(message)s")
        handler = logger.handlers[-1]
        assert handler.level == logging.ERROR
        assert handler.formatter._fmt == "%(levelname)s: %(message)s"

    def test_stream_kwarg(self):
        stream = io.StringIO()
        add_stream_handler(stream=stream)
        assert logger.handlers[-1].stream is stream

    def test_duplicate_prevention(self):
        add_stream_handler()
        count = len(logger.handlers)
        with patch.object(logger, "warning") as mock_warning:
            add_stream_handler()
            mock_warning.assert_called_once_with("StreamHandler already exists for gitrisk logger.")
        assert len(logger.handlers) == count

    def test_file_handler_does_not_block_stream_handler(self, tmp_path):
        add_file_handler(str(tmp_path / "risk.log"))
        add_stream_handler()
        assert sum(type(h) is logging.StreamHandler for h in logger.handlers) == 1


class TestAddFileHandler:
    def test_defaults(self, tmp_path):
        filename = str(tmp_path / "risk.log")
        add_file_handler(filename)
        handler = logger.handlers[-1]
        assert isinstance(handler, logging.FileHandler)
        assert handler.level == logging.INFO
        assert handler.baseFilename == filename

    def test_kwargs(self, tmp_path):
        add_file_handler(str(tmp_path / "risk.log"), level="CRITICAL", mode="a", encoding="utf-8")
        handler = logger.handlers[-1]
        assert handler.level == logging.CRITICAL
        assert handler.mode == "a"
        assert handler.encoding == "utf-8"

    def test_duplicate_prevention(self, tmp_path):
        filename = str(tmp_path / "risk.log")
        add_file_handler(filename)
        count = len(logger.handlers)
        with patch.object(logger, "warning") as mock_warning:
            add_file_handler(filename)
            mock_warning.assert_called_once_with(f"FileHandler for {filename} already exists for gitrisk logger.")
        assert len(logger.handlers) == count

    def test_different_files(self, tmp_path):
        add_file_handler(str(tmp_path / "one.log"))
        add_file_handler(str(tmp_path / "two.log"))
        assert sum(isinstance(h, logging.FileHandler) for h in logger.handlers) == 2


class TestRemoveAllHandlers:
    def test_keeps_null_handler(self, tmp_path):
        add_stream_handler()
        add_file_handler(str(tmp_path / "risk.log"))
        remove_all_handlers()
        assert [type(h) for h in logger.handlers] == [logging.NullHandler]


class TestIntegration:
    def test_analysis_messages_reach_handlers(self, log_builder):
        stream = io.StringIO()
        set_log_level(logging.INFO)
        add_stream_handler(stream=stream, format_string="%(name)s %(levelname)s %(message)s")

        commits, changes = log_builder([("alice", ["a.py", "b.py"])] * 3)
        project = ProjectHistory(InMemoryHistoryStore({7: (commits, changes)}), 7, name="demo")
        project.temporal_coupling(min_shared_commits=2)

        output = stream.getvalue()
        assert "Analyzing temporal coupling for [demo]" in output
        assert "Found 1 coupled file pairs." in output

    def test_debug_details_hidden_at_info(self, log_builder):
        stream = io.StringIO()
        set_log_level(logging.INFO)
        add_stream_handler(stream=stream, level=logging.DEBUG)

        bulk = [f"gen/{i}.py" for i in range(60)]
        commits, changes = log_builder([("alice", bulk)])
        ProjectHistory(InMemoryHistoryStore({1: (commits, changes)}), 1).temporal_coupling()
        assert "Skipped" not in stream.getvalue()

        set_log_level(logging.DEBUG)
        ProjectHistory(InMemoryHistoryStore({1: (commits, changes)}), 1).temporal_coupling()
        assert "Skipped 1 commits touching more than 50 files" in stream.getvalue()
