# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.
"""

import os
import pytest

from marketplace_api.domain.events import EventBus
from marketplace_api.models.entities import Account, BusinessRecord, UserContext
from marketplace_api.models.enums import AccountRole, BusinessStatus
from marketplace_api.services.lifecycle import LifecycleCoordinator
from marketplace_api.services.request_ledger import ModerationConfig, RequestLedger

from .fakes import (
    ADMIN_ID,
    OTHER_OWNER_ID,
    OWNER_ID,
    FakeAccountDirectory,
    FakeBusinessStore,
    FakeClock,
    FakeDatabase,
    FakeModerationRequestStore,
    RecordingNotifications
)

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def database():
    return FakeDatabase()


@pytest.fixture
def businesses(database):
    return FakeBusinessStore(database)


@pytest.fixture
def request_store(database):
    return FakeModerationRequestStore(database)


@pytest.fixture
def accounts():
    return FakeAccountDirectory([
        Account(id=OWNER_ID, email="owner@example.com", first_name="Olivia", role=AccountRole.BUSINESS_OWNER),
        Account(id=OTHER_OWNER_ID, email="other@example.com", first_name="Omar", role=AccountRole.BUSINESS_OWNER),
        Account(id=ADMIN_ID, email="admin@example.com", first_name="Ada", role=AccountRole.SUPER_ADMIN),
    ])


@pytest.fixture
def notifications():
    return RecordingNotifications()


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def ledger(database, businesses, request_store, accounts, events, clock):
    return RequestLedger(
        database,
        businesses,
        request_store,
        accounts,
        events,
        config=ModerationConfig(unsuspension_cooldown_hours=24),
        clock=clock
    )


@pytest.fixture
def coordinator(database, businesses, accounts, ledger, notifications, events, clock):
    return LifecycleCoordinator(
        database,
        businesses,
        accounts,
        ledger,
        notifications,
        events=events,
        clock=clock
    )


@pytest.fixture
def make_business(businesses, clock):
    """Register a business directly in the given status."""
    def _make(status=BusinessStatus.PENDING, owner_id=OWNER_ID, name="Salon Aurora"):
        business = BusinessRecord(
            name=name,
            owner_id=owner_id,
            status=status,
            created_at=clock(),
            updated_at=clock()
        )
        return businesses.create(business)
    return _make


@pytest.fixture
def admin_context():
    return UserContext(user_id=ADMIN_ID, role=AccountRole.SUPER_ADMIN, email="admin@example.com")


@pytest.fixture
def owner_context():
    return UserContext(user_id=OWNER_ID, role=AccountRole.BUSINESS_OWNER, email="owner@example.com")


@pytest.fixture
def other_owner_context():
    return UserContext(user_id=OTHER_OWNER_ID, role=AccountRole.BUSINESS_OWNER, email="other@example.com")
