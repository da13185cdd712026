# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Dramatiq broker for the approval expiry job.

The broker is created once per process. Redis is used unless
DRAMATIQ_TEST_MODE=true, in which case a StubBroker lets actors be
declared and enqueued without a Redis server.

Example:
    from src.infrastructure.background.broker import setup_dramatiq

    setup_dramatiq()
"""

import logging
import os

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.brokers.stub import StubBroker

from src.core.config import get_settings

logger = logging.getLogger(__name__)


class Queues:
    """Queue names."""

    DEFAULT = "default"
    APPROVALS = "approvals"


class Priority:
    """Actor priorities; lower runs first."""

    HIGH = 1
    NORMAL = 3
    LOW = 5


def _test_mode() -> bool:
    return os.getenv("DRAMATIQ_TEST_MODE", "false").lower() == "true"


class BrokerManager:
    """Owns the process-wide broker."""

    def __init__(self) -> None:
        self._broker: dramatiq.Broker | None = None

    @property
    def is_initialized(self) -> bool:
        return self._broker is not None

    @property
    def broker(self) -> dramatiq.Broker:
        """The active broker.

        Raises:
            RuntimeError: If setup() has not run.
        """
        if self._broker is None:
            raise RuntimeError("Broker not initialized. Call setup_dramatiq() first.")
        return self._broker

    def setup(self) -> dramatiq.Broker:
        """Create the broker on first use and register it with dramatiq."""
        if self._broker is not None:
            return self._broker

        if _test_mode():
            broker: dramatiq.Broker = StubBroker()
            broker.emit_after("process_boot")
            logger.info("Dramatiq using StubBroker")
        else:
            redis_url = get_settings().redis.url
            broker = RedisBroker(url=redis_url)
            # Host part only
            logger.info("Dramatiq using Redis at %s", redis_url.rsplit("@", 1)[-1])

        dramatiq.set_broker(broker)
        self._broker = broker
        return broker

    def shutdown(self) -> None:
        """Close the broker if one was created."""
        if self._broker is None:
            return
        self._broker.close()
        self._broker = None
        logger.info("Dramatiq broker closed")


_broker_manager: BrokerManager | None = None


def get_broker_manager() -> BrokerManager:
    """Get the process-wide broker manager."""
    global _broker_manager
    if _broker_manager is None:
        _broker_manager = BrokerManager()
    return _broker_manager


def setup_dramatiq() -> dramatiq.Broker:
    """Create and register the broker. Safe to call more than once."""
    return get_broker_manager().setup()


def get_broker() -> dramatiq.Broker:
    """Get the registered broker.

    Raises:
        RuntimeError: If setup_dramatiq() has not run.
    """
    return get_broker_manager().broker


def shutdown_dramatiq() -> None:
    """Close the broker and forget the manager."""
    global _broker_manager
    if _broker_manager is not None:
        _broker_manager.shutdown()
        _broker_manager = None
