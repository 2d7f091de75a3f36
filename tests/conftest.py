"""
Shared test fixtures.

Every test gets a fresh SQLite in-memory database, a default configuration
and a controllable clock. The controller is replaced by the scripted stub in
``tests/fixtures/stub_controller.py``.
"""

import pytest
from pydantic import SecretStr

from omada_voucher_core.config import (
    AppConfig,
    ControllerConfig,
    SyncConfig,
    TokenConfig,
    reset_config,
    set_config,
)
from omada_voucher_core.db import DatabaseConfig, DatabaseManager, import_all_models
from omada_voucher_core.db.db_config import Base, initialize_db
from omada_voucher_core.exceptions import clear_correlation_id
from omada_voucher_core.repositories import MirrorRepository, SQLCredentialStore
from omada_voucher_core.schemas import Credential
from omada_voucher_core.services import CredentialService
from omada_voucher_core.utils.logger import reset_logging
from tests.fixtures.sample_data import (
    TEST_CLIENT_ID,
    TEST_CLIENT_SECRET,
    TEST_CONTROLLER_URL,
    TEST_TENANT_ID,
    FakeClock,
)
from tests.fixtures.stub_controller import StubController


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keep tests away from real Azure/DB settings and global singletons."""
    monkeypatch.delenv("AzureWebJobsStorage", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("OMADA_ENCRYPTION_KEY", raising=False)
    reset_config()
    reset_logging()
    clear_correlation_id()
    yield
    reset_config()
    reset_logging()
    clear_correlation_id()


@pytest.fixture(scope="session")
def db_config() -> DatabaseConfig:
    """Create SQLite in-memory database configuration for testing."""
    return DatabaseConfig(
        db_type="sqlite",
        database=":memory:",
        echo=False,
        development_mode=True,
    )


@pytest.fixture(scope="session")
def session_db_manager(db_config: DatabaseConfig) -> DatabaseManager:
    """Create and initialize database manager with all models."""
    import_all_models()
    return initialize_db(db_config)


@pytest.fixture(scope="function")
def db_manager(session_db_manager: DatabaseManager) -> DatabaseManager:
    """Fresh tables for each test."""
    Base.metadata.create_all(session_db_manager.engine)
    yield session_db_manager
    session_db_manager.close_session()
    Base.metadata.drop_all(session_db_manager.engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def app_config() -> AppConfig:
    config = AppConfig(
        controller=ControllerConfig(
            connect_timeout=2,
            read_timeout=5,
            verify_ssl=True,
            page_size=2,
            voucher_page_size=3,
        ),
        token=TokenConfig(safety_margin_seconds=60, default_ttl_seconds=7200),
        sync=SyncConfig(
            interval_seconds=300,
            run_on_start=False,
            max_step_attempts=3,
            backoff_base_seconds=2,
            backoff_max_seconds=60,
            backoff_jitter=False,
        ),
    )
    set_config(config)
    return config


@pytest.fixture
def credential() -> Credential:
    return Credential(
        controller_url=TEST_CONTROLLER_URL,
        tenant_id=TEST_TENANT_ID,
        client_id=TEST_CLIENT_ID,
        client_secret=SecretStr(TEST_CLIENT_SECRET),
    )


@pytest.fixture
def credential_store(db_manager) -> SQLCredentialStore:
    return SQLCredentialStore(db_manager)


@pytest.fixture
def credential_service(credential_store, credential) -> CredentialService:
    """Credential handle with the standard test credential already stored."""
    credential_store.save(credential)
    service = CredentialService(credential_store)
    service.load()
    return service


@pytest.fixture
def mirror(db_manager, clock) -> MirrorRepository:
    return MirrorRepository(db_manager, clock=clock)


@pytest.fixture
def stub_controller() -> StubController:
    return StubController(
        base_url=TEST_CONTROLLER_URL,
        tenant_id=TEST_TENANT_ID,
        client_id=TEST_CLIENT_ID,
        client_secret=TEST_CLIENT_SECRET,
    )
