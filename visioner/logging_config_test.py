"""Tests for host logging setup."""

import logging

from visioner.logging_config import setup_logging


class TestSetupLogging:
    def teardown_method(self):
        logging.getLogger().setLevel(logging.WARNING)
        logging.getLogger("shapely").setLevel(logging.NOTSET)

    def test_sets_root_level(self):
        setup_logging("debug")
        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self):
        setup_logging("chatty")
        assert logging.getLogger().level == logging.INFO

    def test_quiets_third_party(self):
        setup_logging("DEBUG", quiet=("shapely", "numpy"))
        assert logging.getLogger("shapely").level == logging.WARNING
        assert logging.getLogger("numpy").level == logging.WARNING

    def test_engine_loggers_propagate(self, caplog):
        setup_logging("DEBUG")
        with caplog.at_level(logging.INFO, logger="visioner.orchestrator"):
            logging.getLogger("visioner.orchestrator").info("enabled")
        assert "enabled" in caplog.text
