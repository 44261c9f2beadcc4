"""Tests for the command line entry point helpers."""

import logging

import pytest

from swarm_comments.main import parse_args, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestSetupLogging:

    def test_text_format(self):
        setup_logging("DEBUG", "text")
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert "%(name)s" in root.handlers[0].formatter._fmt

    def test_json_format(self):
        setup_logging("WARNING", "json")
        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert root.handlers[0].formatter._fmt.startswith("{")


class TestParseArgs:

    def test_send(self):
        assert parse_args(["--send", "hi"]).send == "hi"

    def test_no_args(self):
        assert parse_args([]).send is None
