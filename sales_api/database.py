"""Database configuration and initialization."""
from contextlib import contextmanager

from flask import current_app
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from sales_api.exceptions import SalesError, StoreFailure

# Create SQLAlchemy base
Base = declarative_base()


def _build_engine(database_uri: str, echo: bool = False):
    """Create the engine, using a single shared connection for in-memory SQLite."""
    if database_uri in ('sqlite://', 'sqlite:///:memory:'):
        return create_engine(
            database_uri,
            echo=echo,
            connect_args={'check_same_thread': False},
            poolclass=StaticPool
        )
    if database_uri.startswith('sqlite'):
        return create_engine(database_uri, echo=echo)
    return create_engine(
        database_uri,
        echo=echo,
        pool_pre_ping=True,  # Enable connection health checks
        pool_size=10,
        max_overflow=20
    )


class Database:
    """
    Store handle: owns the engine and the scoped session factory.

    Opened by the app factory, closed at shutdown with ``close()``. Services
    never look it up themselves; they receive a session from the caller.
    """

    def __init__(self, database_uri: str, echo: bool = False):
        self.engine = _build_engine(database_uri, echo)
        self.session = scoped_session(
            sessionmaker(autoflush=False, bind=self.engine)
        )

    def init_app(self, app) -> None:
        """Register the handle on the app and the per-request session cleanup."""
        app.extensions['database'] = self

        @app.teardown_appcontext
        def shutdown_session(exception=None):
            """Close database session and rollback on error."""
            if exception:
                self.session.rollback()
            self.session.remove()

    def create_all(self) -> None:
        # Import models so metadata is complete
        from sales_api import models  # noqa: F401
        Base.metadata.create_all(self.engine)

    def drop_all(self) -> None:
        from sales_api import models  # noqa: F401
        Base.metadata.drop_all(self.engine)

    def close(self) -> None:
        self.session.remove()
        self.engine.dispose()


def init_db(app) -> Database:
    """Initialize database connection from app config."""
    database = Database(
        app.config['SQLALCHEMY_DATABASE_URI'],
        echo=app.config.get('SQLALCHEMY_ECHO', False)
    )
    database.init_app(app)
    return database


def get_database() -> Database:
    """Get the store handle of the current app."""
    return current_app.extensions['database']


def get_session():
    """Get database session for the current request."""
    return get_database().session


@contextmanager
def unit_of_work(session):
    """
    Run a block as one atomic unit: commit on success, rollback on any error.

    Persistence errors are re-raised as StoreFailure; domain errors propagate
    unchanged after the rollback.
    """
    try:
        yield session
        session.commit()
    except SalesError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        raise StoreFailure(f'Error de base de datos: {e.__class__.__name__}') from e
    except Exception:
        session.rollback()
        raise
