"""
Pytest configuration and fixtures.

This file provides pytest-specific fixtures. For sample profiles and oracle
payloads, see tests/__init__.py
"""

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from database import database as database_module
from database.models import Base, Candidate, Employer, Job
from database.repository import MatchingRepository


def _enable_sqlite_savepoints(engine):
    """pysqlite needs explicit BEGIN for SAVEPOINT/begin_nested to work."""

    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest.fixture
def sqlite_engine(tmp_path):
    """File-backed SQLite so separate sessions see each other's commits."""
    engine = create_engine(f"sqlite:///{tmp_path / 'matching.db'}")
    _enable_sqlite_savepoints(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def bound_engine(sqlite_engine):
    """Point SessionLocal (and therefore matching_uow) at the test engine."""
    database_module.configure_engine(engine=sqlite_engine)
    yield sqlite_engine
    database_module.SessionLocal.configure(bind=None)
    database_module._engine = None


@pytest.fixture
def db_session(sqlite_engine):
    session = sessionmaker(bind=sqlite_engine, autoflush=False)()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def repo(db_session):
    return MatchingRepository(db_session)


@pytest.fixture
def seeded(sqlite_engine):
    """
    One employer with one open and one draft job, plus three candidates.

    Returns a dict of ids.
    """
    session = sessionmaker(bind=sqlite_engine)()
    employer = Employer(id="emp-1", name="Grace", email="grace@acme.io", company_name="Acme")
    session.add(employer)
    session.add_all([
        Job(id="job-open", employer_id="emp-1", title="Backend Engineer", company_name="Acme",
            status="open", required_skills=["python", "sql"], work_setting="remote",
            salary_min=80000, salary_max=120000, career_growth_opportunities="Tech lead track"),
        Job(id="job-draft", employer_id="emp-1", title="Draft Role", status="draft",
            required_skills=["go"]),
    ])
    session.add_all([
        Candidate(id="cand-1", name="Ada", email="ada@example.com", skills=["Python", "SQL"],
                  preferred_work_setting="remote", expected_salary=100000),
        Candidate(id="cand-2", name="Linus", email="linus@example.com", skills=["C"],
                  preferred_work_setting="onsite"),
        Candidate(id="cand-3", name="Barbara", email=None, skills=["Python", "SQL"],
                  preferred_work_setting="remote"),
    ])
    session.commit()
    session.close()
    return {
        'employer_id': "emp-1",
        'open_job_id': "job-open",
        'draft_job_id': "job-draft",
        'candidate_ids': ["cand-1", "cand-2", "cand-3"],
    }
