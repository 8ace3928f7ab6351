"""Infrastructure layer."""

from shipledger.infrastructure.database import SessionLocal, get_db, init_db
from shipledger.infrastructure.memory import InMemoryLedgerRepository
from shipledger.infrastructure.repositories import SqlLedgerRepository
