"""
Create the explorer database and tables.

Usage: python -m explorer.api.init_db [--network mainnet]
"""

import argparse

from loguru import logger

from explorer.base import (
    create_clickhouse_database,
    get_clickhouse_client,
    get_clickhouse_connection_string,
    get_network,
    setup_enhanced_logger,
)
from explorer.base.clickhouse_schema import init_tables


def main():
    parser = argparse.ArgumentParser(description="Create the explorer ClickHouse schema")
    parser.add_argument("--network", default=get_network(), help="Network whose database is initialized")
    args = parser.parse_args()

    setup_enhanced_logger(f"{args.network}-explorer-init-db")
    connection_params = get_clickhouse_connection_string(args.network)

    create_clickhouse_database(connection_params)
    client = get_clickhouse_client(connection_params)
    try:
        init_tables(client)
    finally:
        client.close()
    logger.info(f"Schema ready for network {args.network}")


if __name__ == "__main__":
    main()
