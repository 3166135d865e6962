from __future__ import annotations

import logging

from campus_ledger.utils.logger import LOGGER_NAMESPACE, configure_logging, get_logger


def test_outside_modules_are_nested_under_the_ledger_namespace() -> None:
    assert get_logger("app").name == "campus_ledger.app"
    assert get_logger("campus_ledger.services.ledger_service").name == (
        "campus_ledger.services.ledger_service"
    )


def test_handler_is_attached_once_and_does_not_propagate() -> None:
    get_logger("first")
    get_logger("second")
    namespace_logger = configure_logging()

    assert namespace_logger is logging.getLogger(LOGGER_NAMESPACE)
    assert len(namespace_logger.handlers) == 1
    assert namespace_logger.propagate is False


def test_explicit_level_is_applied_after_first_configuration() -> None:
    namespace_logger = logging.getLogger(LOGGER_NAMESPACE)
    previous = namespace_logger.level
    try:
        configure_logging("debug")
        assert get_logger("app").getEffectiveLevel() == logging.DEBUG
        configure_logging("warning")
        assert get_logger("app").getEffectiveLevel() == logging.WARNING
    finally:
        namespace_logger.setLevel(previous)
