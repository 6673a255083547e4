import logging                  # For structured logging
import time                     # For cycle duration tracking
from concurrent.futures import ThreadPoolExecutor, as_completed
from threading import Lock      # Guards every registry read and write

from azure_sql_exporter.exposition import SnapshotEmitter
from azure_sql_exporter.registry import MetricRegistry
from azure_sql_exporter.scraper import QueryFailure, connect, scrape_database

LABEL_NAMES = ('server', 'database')

# (metric name, ResourceStats attribute, help text)
STAT_GAUGES = (
    ('cpu_percent', 'cpu',
     "Average compute utilization in percentage of the limit of the service tier."),
    ('data_io', 'data_io',
     "Average I/O utilization in percentage based on the limit of the service tier."),
    ('log_io', 'log_io',
     "Average write resource utilization in percentage of the limit of the service tier."),
    ('memory_percent', 'memory',
     "Average Memory Usage In Percent"),
    ('worker_percent', 'worker',
     "Maximum concurrent workers (requests) in percentage based on the limit of the database's service tier."),
    ('session_percent', 'session',
     "Maximum concurrent sessions in percentage based on the limit of the database's service tier."),
)


class AzureSQLExporter:
    """
    Scrapes every configured database once per collect() call and keeps the
    latest values in a registry shared by all requests of the process.
    """

    def __init__(self, databases, registry=None, connect=connect):
        self.databases = tuple(databases)
        self.registry = registry if registry is not None else MetricRegistry()
        self.connect = connect
        self.lock = Lock()
        self.emitter = SnapshotEmitter(self.registry, self.lock)

        self.up = self.registry.register(
            'up', "Was the last scrape of Azure SQL successful.")
        self.stat_families = [
            (self.registry.register(name, help_text, LABEL_NAMES), attr)
            for name, attr, help_text in STAT_GAUGES
        ]
        self.db_up = self.registry.register(
            'db_up', "Is the database is accessible.", LABEL_NAMES)

    def record(self, database, outcome):
        """Writes one target's outcome into the registry as a single unit."""
        labels = database.labels()
        with self.lock:
            if outcome.ok:
                for family, attr in self.stat_families:
                    self.registry.set(family, labels, getattr(outcome.stats, attr))
                self.registry.set(self.db_up, labels, 1)
            else:
                # Stat gauges keep their previous values
                self.registry.set(self.db_up, labels, 0)

    def _scrape_and_record(self, database):
        outcome = scrape_database(database, connect=self.connect)
        self.record(database, outcome)
        return outcome

    def collect(self):
        """
        Scrapes all databases concurrently, one thread per database, and
        waits for every scrape before returning. Never raises for a failed
        target.
        """
        start = time.time()
        failed = 0
        if self.databases:
            with ThreadPoolExecutor(max_workers=len(self.databases),
                                    thread_name_prefix='scrape') as executor:
                future_to_db = {executor.submit(self._scrape_and_record, db): db
                                for db in self.databases}
                for future in as_completed(future_to_db):
                    database = future_to_db[future]
                    try:
                        outcome = future.result()
                    except Exception as e:
                        reason = database.redact(e)
                        logging.error(f"Unexpected error scraping {database}: {reason}")
                        self.record(database, QueryFailure(reason))
                        failed += 1
                        continue
                    if not outcome.ok:
                        failed += 1

        with self.lock:
            self.registry.set(self.up, (), 1)

        duration = time.time() - start
        logging.info(f"Scrape of {len(self.databases)} database(s) completed in "
                     f"{duration:.3f} seconds, {failed} failed")

    def render(self):
        return self.emitter.render()
