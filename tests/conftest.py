"""Shared test fixtures."""
import itertools
from contextlib import ExitStack
from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import patch, MagicMock
from sqlalchemy import create_engine, event
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from kamcrm.database import Base

# Modules that bind get_session at import time
_SESSION_TARGETS = [
    'kamcrm.database.get_session',
    'kamcrm.routes.enrichment.get_session',
    'kamcrm.routes.insights.get_session',
    'kamcrm.routes.records.get_session',
    'kamcrm.routes.monitor.get_session',
    'kamcrm.pipeline.runner.get_session',
    'kamcrm.cli.get_session',
]


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created."""
    engine = create_engine('sqlite:///:memory:')
    import kamcrm.models.user
    import kamcrm.models.company
    import kamcrm.models.lead
    import kamcrm.models.account
    import kamcrm.models.opportunity
    import kamcrm.models.update
    import kamcrm.models.analysis
    import kamcrm.models.job_status
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """SQLAlchemy session bound to in-memory SQLite. Rolls back after each test."""
    Session = sessionmaker(bind=db_engine)
    session = Session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(autouse=True)
def patch_get_session(db_session):
    """Route all get_session() calls to the test session.

    We disable close() so that route handlers calling session.close()
    in their finally blocks don't invalidate the shared test session.
    """
    _real_close = db_session.close
    db_session.close = lambda: None
    with ExitStack() as stack:
        for target in _SESSION_TARGETS:
            stack.enter_context(patch(target, return_value=db_session))
        yield db_session
    db_session.close = _real_close


@pytest.fixture(autouse=True)
def _clear_breaker_registry():
    """Circuit breakers are module-level; start every test with none registered."""
    from kamcrm.services.circuit_breaker import _registry
    _registry.clear()
    yield
    _registry.clear()


@pytest.fixture
def mock_redis():
    """Mock Redis client. Returns a MagicMock with common Redis methods."""
    mock = MagicMock()
    mock.get.return_value = None
    mock.set.return_value = True
    mock.incr.return_value = 1
    mock.hgetall.return_value = {}
    with patch('kamcrm.extensions.redis_client', mock):
        yield mock


@pytest.fixture
def app(mock_redis):
    """Flask test app."""
    from kamcrm import create_app
    app = create_app()
    app.config['TESTING'] = True
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c


@pytest.fixture
def failing_company_write():
    """Make every UPDATE of a company row fail inside the flush."""
    from kamcrm.models.company import Company

    def _fail(mapper, connection, target):
        raise OperationalError('UPDATE company', {}, Exception('database is locked'))

    event.listen(Company, 'before_update', _fail)
    yield
    event.remove(Company, 'before_update', _fail)


# ---------------------------------------------------------------------------
# Fake chat-completion client
# ---------------------------------------------------------------------------

def _completion(content):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


@pytest.fixture
def completion():
    """Factory for OpenAI-style chat completion responses carrying content."""
    return _completion


@pytest.fixture
def fake_openai():
    """MagicMock OpenAI client; set .chat.completions.create.return_value/side_effect."""
    return MagicMock()


# ---------------------------------------------------------------------------
# Row factories (persisted in db_session)
# ---------------------------------------------------------------------------

def _persist(session, obj):
    session.add(obj)
    session.commit()
    return obj


@pytest.fixture
def make_user(db_session):
    from kamcrm.models.user import User

    counter = itertools.count(1)

    def _make(**overrides):
        defaults = dict(name='Dana Rivera', email=f'user{next(counter)}@example.com', role='user')
        defaults.update(overrides)
        return _persist(db_session, User(**defaults))
    return _make


@pytest.fixture
def make_company(db_session):
    from kamcrm.models.company import Company, CompanyService

    def _make(services=('Cloud migration', 'Data platform'), **overrides):
        defaults = dict(
            name='Northwind Consulting',
            website='https://northwind.example',
            industry='IT Services',
            description='Cloud and data consultancy.',
        )
        defaults.update(overrides)
        company = Company(**defaults)
        company.services = [CompanyService(name=s) for s in services]
        return _persist(db_session, company)
    return _make


@pytest.fixture
def make_lead(db_session):
    from kamcrm.models.lead import Lead

    def _make(**overrides):
        defaults = dict(
            company_name='Acme Corp',
            person_name='Jordan Lee',
            email='jordan@acme.example',
            industry='Manufacturing',
            country='US',
            status='New',
        )
        defaults.update(overrides)
        return _persist(db_session, Lead(**defaults))
    return _make


@pytest.fixture
def make_account(db_session):
    from kamcrm.models.account import Account

    def _make(**overrides):
        defaults = dict(name='Globex', type='Client', status='Active', industry='Retail')
        defaults.update(overrides)
        return _persist(db_session, Account(**defaults))
    return _make


@pytest.fixture
def make_opportunity(db_session):
    from kamcrm.models.opportunity import Opportunity

    def _make(account, **overrides):
        defaults = dict(name='ERP rollout', account_id=account.id, status='Negotiation', value=50000.0)
        defaults.update(overrides)
        return _persist(db_session, Opportunity(**defaults))
    return _make


@pytest.fixture
def make_update(db_session):
    from kamcrm.models.update import Update

    def _make(**overrides):
        defaults = dict(type='Call', content='Discussed pricing.')
        defaults.update(overrides)
        return _persist(db_session, Update(**defaults))
    return _make


@pytest.fixture
def make_analysis(db_session):
    """Persist an AnalysisRecord; age_hours sets last_refreshed_at relative to now."""
    from kamcrm.models.analysis import AnalysisRecord

    def _make(entity_type, entity_id, age_hours=0, status='success', **overrides):
        defaults = dict(
            entity_type=entity_type,
            entity_id=entity_id,
            analysis_type='enrichment',
            status=status,
            score=70.0,
            recommendations=['Cloud migration'],
            pitch_notes='Lead with cost savings.',
            use_case='Move legacy ERP to the cloud.',
            last_refreshed_at=datetime.now(timezone.utc) - timedelta(hours=age_hours),
        )
        defaults.update(overrides)
        return _persist(db_session, AnalysisRecord(**defaults))
    return _make
