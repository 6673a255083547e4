import logging                  # For structured logging
import time                     # For scrape duration tracking
from dataclasses import dataclass
from decimal import Decimal

import pymssql                  # For connecting to Azure SQL / SQL Server

# Most recent row of sys.dm_db_resource_stats. Column order is fixed and is
# relied on by ResourceStats.from_row.
QUERY = (
    "SELECT TOP 1 avg_cpu_percent, avg_data_io_percent, avg_log_write_percent, "
    "avg_memory_usage_percent, max_session_percent, max_worker_percent "
    "FROM sys.dm_db_resource_stats ORDER BY end_time DESC"
)

COLUMNS = ('cpu', 'data_io', 'log_io', 'memory', 'session', 'worker')


class RowMappingError(ValueError):
    """The result row does not have the expected shape or types."""


def _to_float(column, value):
    # bool is an int subclass but never a valid percentage
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise RowMappingError(f"column '{column}' is not numeric: {value!r}")
    return float(value)


@dataclass(frozen=True)
class ResourceStats:
    cpu: float
    data_io: float
    log_io: float
    memory: float
    session: float
    worker: float

    @classmethod
    def from_row(cls, row):
        if row is None:
            raise RowMappingError("query returned no rows")
        row = tuple(row)
        if len(row) != len(COLUMNS):
            raise RowMappingError(f"expected {len(COLUMNS)} columns, got {len(row)}")
        return cls(*(_to_float(col, val) for col, val in zip(COLUMNS, row)))


@dataclass(frozen=True)
class ScrapeSuccess:
    stats: ResourceStats
    ok = True


@dataclass(frozen=True)
class ConnectFailure:
    reason: str
    ok = False


@dataclass(frozen=True)
class QueryFailure:
    reason: str
    ok = False


def connect(database):
    return pymssql.connect(**database.connect_kwargs())


def _close(database, conn):
    try:
        conn.close()
    except Exception as e:
        logging.warning(f"Failed to close connection to {database}: {database.redact(e)}")


def scrape_database(database, connect=connect):
    """
    Opens a fresh connection to database, reads the latest resource stats row
    and closes the connection on every exit path.

    Returns ScrapeSuccess, ConnectFailure or QueryFailure. Never raises for
    driver or row errors; failure reasons have the password masked.
    """
    logging.debug(f"Scraping {database}")
    start_time = time.time()
    try:
        conn = connect(database)
    except Exception as e:
        reason = database.redact(e)
        logging.error(f"Failed to access database {database}: {reason}")
        return ConnectFailure(reason)

    try:
        cursor = conn.cursor()
        cursor.execute(QUERY)
        stats = ResourceStats.from_row(cursor.fetchone())
    except Exception as e:
        reason = database.redact(e)
        logging.error(f"Failed to query database {database}: {reason}")
        return QueryFailure(reason)
    finally:
        _close(database, conn)

    elapsed = time.time() - start_time
    logging.debug(f"Scraped {database} in {elapsed:.3f} seconds: {stats}")
    return ScrapeSuccess(stats)
