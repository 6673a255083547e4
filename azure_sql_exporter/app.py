import argparse
import gzip
import logging                  # For structured logging
import os
import sys

from flask import Flask, request, Response  # For HTTP metrics endpoint

from azure_sql_exporter import __version__
from azure_sql_exporter.collector import AzureSQLExporter
from azure_sql_exporter.config import LOG_LEVELS, ConfigError, load_config
from azure_sql_exporter.exposition import CONTENT_TYPE
from azure_sql_exporter.logutil import configure_logging
from azure_sql_exporter.scraper import connect as db_connect

DEFAULT_LISTEN_ADDRESS = ':9104'
DEFAULT_METRICS_PATH = '/metrics'
DEFAULT_CONFIG_FILE = './config.yaml'

LANDING_PAGE = """<html>
<head><title>Azure SQL Exporter</title></head>
<body>
<h1>Azure SQL Exporter</h1>
<p><a href='{metrics_path}'>Metrics</a></p>
</body>
</html>
"""


def make_text_response(body, status=200, content_type=CONTENT_TYPE):
    """Create a response with a gzip-compressed body when the client supports
    it via Accept-Encoding.
    """
    body_bytes = body.encode('utf-8') if isinstance(body, str) else body

    accept_enc = request.headers.get('Accept-Encoding', '') or ''
    logging.debug(f"Client Accept-Encoding header: '{accept_enc}'")
    if 'gzip' in accept_enc.lower():
        compressed = gzip.compress(body_bytes)
        logging.debug(f"Compressed response: {len(body_bytes)} -> {len(compressed)} bytes")
        resp = Response(compressed, status=status)
        resp.headers['Content-Encoding'] = 'gzip'
        resp.headers['Content-Type'] = content_type
        resp.headers['Content-Length'] = str(len(compressed))
        return resp

    resp = Response(body_bytes, status=status)
    resp.headers['Content-Type'] = content_type
    resp.headers['Content-Length'] = str(len(body_bytes))
    return resp


def create_app(config_path=None, metrics_path=None, connect=None):
    """
    Builds the Flask app and the process-wide exporter.
    Raises ConfigError when the config cannot be loaded.
    """
    config_path = config_path or os.environ.get('AZURE_SQL_EXPORTER_CONFIG', DEFAULT_CONFIG_FILE)
    metrics_path = metrics_path or os.environ.get('AZURE_SQL_EXPORTER_TELEMETRY_PATH', DEFAULT_METRICS_PATH)

    configure_logging()
    config = load_config(config_path)
    configure_logging(LOG_LEVELS[config.log_level], config.timezone)

    exporter = AzureSQLExporter(config.databases, connect=connect or db_connect)

    app = Flask(__name__)
    app.config['EXPORTER'] = exporter
    app.config['METRICS_PATH'] = metrics_path

    @app.route('/')
    def index():
        return make_text_response(LANDING_PAGE.format(metrics_path=metrics_path),
                                  content_type='text/html; charset=utf-8')

    def metrics():
        exporter.collect()
        body = exporter.render()
        if config.log_scraped_metrics:
            logging.info("--- Metrics scrape ---\n" + body.decode('utf-8') + "--- End scrape ---")
        return make_text_response(body)

    app.add_url_rule(metrics_path, 'metrics', metrics)
    return app


def parse_listen_address(address):
    """Split 'host:port' or ':port' into (host, port); an empty host means all interfaces."""
    host, sep, port = address.rpartition(':')
    if not sep:
        raise ValueError(f"Invalid listen address: {address}")
    try:
        port = int(port)
    except ValueError:
        raise ValueError(f"Invalid port in listen address: {address}")
    return host.strip('[]') or '0.0.0.0', port


def build_parser():
    parser = argparse.ArgumentParser(
        prog='azure-sql-exporter',
        description='Prometheus exporter for Azure SQL Database resource statistics.')
    parser.add_argument('--web.listen-address', dest='listen_address', default=DEFAULT_LISTEN_ADDRESS,
                        help='Address to listen on for web interface and telemetry.')
    parser.add_argument('--web.telemetry-path', dest='metrics_path', default=DEFAULT_METRICS_PATH,
                        help='Path under which to expose metrics.')
    parser.add_argument('--config.file', dest='config_file', default=DEFAULT_CONFIG_FILE,
                        help='Specify the config file with the database credentials.')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        host, port = parse_listen_address(args.listen_address)
    except ValueError as e:
        parser.error(str(e))

    try:
        app = create_app(args.config_file, args.metrics_path)
    except ConfigError as e:
        logging.critical(f"Cannot open config file {args.config_file}: {e}")
        sys.exit(1)

    logging.info(f"Starting Server: {args.listen_address}")
    app.run(host=host, port=port, threaded=True)
