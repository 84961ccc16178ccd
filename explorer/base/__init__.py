import os
from dotenv import load_dotenv
from loguru import logger
from .metrics import setup_metrics, MetricsRegistry
from .enhanced_logging import (
    setup_enhanced_logger,
    ErrorContextManager,
    classify_error,
    log_service_start,
)

load_dotenv()


def get_network() -> str:
    return os.getenv("NETWORK", "mainnet").lower()


def get_clickhouse_connection_string(network: str):
    connection_params = {
        "host": os.getenv(f"{network.upper()}_CLICKHOUSE_HOST", "localhost"),
        "port": os.getenv(f"{network.upper()}_CLICKHOUSE_PORT", "8123"),
        "database": os.getenv(f"{network.upper()}_CLICKHOUSE_DATABASE", f"{network}"),
        "user": os.getenv(f"{network.upper()}_CLICKHOUSE_USER", "default"),
        "password": os.getenv(f"{network.upper()}_CLICKHOUSE_PASSWORD", ""),
        "max_execution_time": int(os.getenv(f"{network.upper()}_CLICKHOUSE_MAX_EXECUTION_TIME", "300")),
    }

    return connection_params


def get_clickhouse_client(connection_params, database=None):
    """Create a ClickHouse client that allows concurrent queries.

    Session IDs are disabled because one client is shared by all requests
    and by the enrichment fan-out, and ClickHouse rejects concurrent queries
    within a single session.
    """
    from clickhouse_connect import get_client
    return get_client(
        host=connection_params['host'],
        port=int(connection_params['port']),
        username=connection_params['user'],
        password=connection_params['password'],
        database=database or connection_params['database'],
        autogenerate_session_id=False,
        settings={
            'max_execution_time': connection_params.get('max_execution_time', 300),
        }
    )


def create_clickhouse_database(connection_params):
    client = get_clickhouse_client(connection_params, database='default')
    client.command(f"CREATE DATABASE IF NOT EXISTS {connection_params['database']}")
    logger.info(f"Database {connection_params['database']} is ready")


def get_api_key():
    """Capability key required by mutating endpoints. None disables them."""
    api_key = os.getenv("EXPLORER_API_KEY", "").strip()
    return api_key or None


def get_enrichment_max_concurrency() -> int:
    return max(int(os.getenv("ENRICHMENT_MAX_CONCURRENCY", "8")), 1)


def get_rate_limit_per_hour() -> int:
    return int(os.getenv("RATE_LIMIT_PER_HOUR", "1000"))


def get_cors_origins():
    origins = os.getenv("CORS_ORIGINS", "*")
    return [origin.strip() for origin in origins.split(",") if origin.strip()]


def get_service_name() -> str:
    return f"{get_network()}-explorer-api"
