import functools
import logging

import click.testing
import pytest

from kreflector.cli import main
from kreflector.engines.loggers import ReflectorFormatter


@pytest.fixture(autouse=True)
def _clear_own_handlers():
    logger = logging.getLogger()
    original_handlers = logger.handlers[:]
    original_level = logger.level
    yield
    logger.handlers[:] = [
        handler for handler in logger.handlers
        if handler in original_handlers or not isinstance(handler.formatter, ReflectorFormatter)
    ]
    logger.setLevel(original_level)


@pytest.fixture()
def runner():
    runner = click.testing.CliRunner()
    return runner


@pytest.fixture()
def invoke(runner):
    return functools.partial(runner.invoke, main)


@pytest.fixture()
def print_events(mocker):
    return mocker.patch('kreflector.cli.print_events')
