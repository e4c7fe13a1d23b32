"""
Session helpers: one connect/operate/disconnect cycle per call.

Radios drop out of programming mode after each session, so scenarios that
read, write and read again run three independent sessions, each with a
fresh backend and driver.
"""

import time
import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, TypeVar, Union

from codeplug_flasher.models import RadioModel, create_radio, get_model
from codeplug_flasher.protocol.driver import RadioDriver
from codeplug_flasher.protocol.transport import RadioBackend

logger = logging.getLogger(__name__)

T = TypeVar("T")

SessionRunner = Callable[[Callable[[RadioDriver], T]], T]
BackendFactory = Callable[[], RadioBackend]


@contextmanager
def radio_session(driver: RadioDriver) -> Iterator[RadioDriver]:
    """Connect ``driver``, yield it, and always disconnect afterwards."""
    driver.connect()
    try:
        yield driver
    finally:
        driver.disconnect()


def make_session_runner(
    model: Union[str, RadioModel],
    backend_factory: BackendFactory,
    settle_delay: Optional[float] = None,
    **options,
) -> SessionRunner:
    """
    Build a runner that executes one function per radio session.

    Args:
        model: Model selector
        backend_factory: Returns a new, unopened backend for each session
        settle_delay: Pause after each session (defaults to the model's)
        **options: Driver options passed to create_radio()

    Returns:
        Callable taking ``fn(driver)`` and returning its result
    """
    config = get_model(model)
    delay = config.settle_delay if settle_delay is None else settle_delay

    def run(fn: Callable[[RadioDriver], T]) -> T:
        driver = create_radio(config.model, backend_factory(), **options)
        try:
            with radio_session(driver) as session:
                return fn(session)
        finally:
            if delay > 0:
                logger.debug(f"Waiting {delay}s for {config.name} to settle")
                time.sleep(delay)

    return run
