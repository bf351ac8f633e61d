import logging

from smartroute.utils.logger import setup_logger


def test_setup_is_idempotent_and_reads_level(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "debug")
    logger = setup_logger("smartroute.test_logger_a")
    again = setup_logger("smartroute.test_logger_a")

    assert logger is again
    assert len(logger.handlers) == 1
    assert logger.level == logging.DEBUG
    assert not logger.propagate


def test_explicit_level_wins(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    assert setup_logger("smartroute.test_logger_b", level="warning").level == logging.WARNING
