# SPDX-License-Identifier: Apache-2.0

"""
Tests for terminal registration.
"""

import pytest

from domain.errors import NotFoundError
from models.entities import TerminalLocation
from models.enums import ConnectionStatus, SatelliteNetwork, ServiceTier
from services.terminals import TerminalManager


class TestTerminalManager:
    """Test terminal registration and lookup."""

    @pytest.fixture
    def manager(self, clock, ids):
        return TerminalManager(clock, ids)

    def test_register_creates_disconnected_terminal(self, manager, terminal_request_factory, clock):
        """A registered terminal starts disconnected with zero usage and metrics."""
        terminal = manager.register(terminal_request_factory(plan=ServiceTier.PRIORITY, data_allowance=50))

        assert terminal.id == "term-0001"
        assert terminal.status == ConnectionStatus.DISCONNECTED
        assert terminal.connection is None
        assert terminal.created_at == clock.now()
        assert terminal.subscription.plan == "priority"
        assert terminal.subscription.data_allowance == 50
        assert terminal.subscription.data_used == 0
        assert terminal.metrics.messages_transmitted == 0

    def test_ids_are_sequential(self, manager, terminal_request_factory):
        first = manager.register(terminal_request_factory())
        second = manager.register(terminal_request_factory())

        assert (first.id, second.id) == ("term-0001", "term-0002")
        assert manager.count() == 2

    def test_get_unknown(self, manager):
        with pytest.raises(NotFoundError) as exc_info:
            manager.get("term-9999")

        assert exc_info.value.resource == "Terminal"

    def test_list_filters(self, manager, terminal_request_factory):
        manager.register(terminal_request_factory())
        manager.register(terminal_request_factory(network=SatelliteNetwork.STARLINK))

        assert len(manager.list()) == 2
        assert len(manager.list(network=SatelliteNetwork.STARLINK)) == 1
        assert len(manager.list(status=ConnectionStatus.CONNECTED)) == 0

    def test_update_location(self, manager, terminal_request_factory):
        terminal = manager.register(terminal_request_factory())

        manager.update_location(terminal.id, TerminalLocation(lat=10, lon=20))

        assert manager.get(terminal.id).location.lat == 10

    def test_lock_is_per_terminal(self, manager):
        assert manager.lock_for("term-1") is manager.lock_for("term-1")
        assert manager.lock_for("term-1") is not manager.lock_for("term-2")
