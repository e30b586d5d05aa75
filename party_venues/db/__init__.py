"""Database initialization and persistence layer."""

from party_venues.db.engine import (
    create_db_engine,
    get_database_url,
    get_engine,
    get_session,
    get_session_factory,
    init_db,
    reset_engine,
    run_migrations,
)
from party_venues.db.models import (
    Base,
    PartyPackageDB,
    QueueItemDB,
    VenueDB,
)
from party_venues.db.repositories import (
    PartyPackageRepository,
    QueueRepository,
    VenueFilters,
    VenueRepository,
)

__all__ = [
    # Engine
    "create_db_engine",
    "get_database_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_db",
    "reset_engine",
    "run_migrations",
    # Models
    "Base",
    "QueueItemDB",
    "VenueDB",
    "PartyPackageDB",
    # Repositories
    "QueueRepository",
    "VenueRepository",
    "VenueFilters",
    "PartyPackageRepository",
]
