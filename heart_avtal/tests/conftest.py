from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# FORCE model registration
import heart_avtal.models  # noqa

from heart_avtal.core.config import Settings
from heart_avtal.core.contract_locks import ContractLockRegistry
from heart_avtal.db.base import Base
from heart_avtal.integrations.escrow_backend import SandboxEscrowBackend
from heart_avtal.integrations.identity_verifier import SandboxIdentityVerifier
from heart_avtal.integrations.notifications import RecordingNotificationDispatcher
from heart_avtal.services.heart_avtal_service import HeartAvtalService


@pytest.fixture(scope="function")
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture(scope="function")
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def settings():
    return Settings(
        auto_approval_threshold=Decimal("500000"),
        requires_platform_approval_default=True,
        collaborator_timeout_seconds=5.0,
    )


@pytest.fixture
def notifier():
    return RecordingNotificationDispatcher()


@pytest.fixture
def verifier():
    return SandboxIdentityVerifier()


@pytest.fixture
def escrow_backend():
    return SandboxEscrowBackend()


@pytest.fixture
def svc(settings, notifier, verifier, escrow_backend):
    return HeartAvtalService(
        settings=settings,
        notifier=notifier,
        identity_verifier=verifier,
        escrow_backend=escrow_backend,
        locks=ContractLockRegistry(),
    )
