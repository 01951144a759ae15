from __future__ import annotations

import pytest

from valerix.common import db as common_db
from valerix.common.models import ReservationResult
from valerix.inventory_service.chaos import ChaosConfig, FaultInjector
from valerix.inventory_service.ledger import IdempotentLedger
from valerix.inventory_service.reservation import InventoryReservationService


# -------------------------
# Fakes used by coordinator and API tests
# -------------------------

class RecordingPublisher:
    """Stands in for the broker publisher; keeps every message it accepts."""

    def __init__(self, ok: bool = True):
        self.ok = ok
        self.messages = []

    def publish(self, message) -> bool:
        if self.ok:
            self.messages.append(message)
        return self.ok

    def close(self):
        pass


class FakeInventoryClient:
    def __init__(self, result: ReservationResult):
        self.result = result
        self.calls = []

    def reserve(self, order, deadline_s):
        self.calls.append((order, deadline_s))
        return self.result


class RecordingSleep:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "inventory.db")
    common_db.init_db(path)
    return path


@pytest.fixture
def ledger(db_path):
    return IdempotentLedger(db_path)


@pytest.fixture
def chaos():
    return ChaosConfig()


@pytest.fixture
def sleeper():
    return RecordingSleep()


@pytest.fixture
def faults(chaos, sleeper):
    return FaultInjector(chaos, sleep=sleeper)


@pytest.fixture
def service(ledger, faults):
    return InventoryReservationService(ledger, faults)
