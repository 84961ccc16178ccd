import os
import time

from loguru import logger


def split_statements(schema_sql: str):
    """Split a schema file into executable statements, dropping comments"""
    statements = []
    current_statement = []

    for line in schema_sql.split('\n'):
        line = line.strip()
        if line.startswith('--') or not line:
            continue

        current_statement.append(line)

        if line.endswith(';'):
            full_statement = ' '.join(current_statement).strip()
            if full_statement:
                statements.append(full_statement.rstrip(';'))
            current_statement = []

    # Trailing statement without a semicolon
    if current_statement:
        statements.append(' '.join(current_statement).strip().rstrip(';'))

    return statements


def init_tables(client, schema_path=None):
    """Create explorer tables from the schema file"""
    start_time = time.time()
    schema_path = schema_path or os.path.join(os.path.dirname(__file__), 'schema.sql')
    logger.info("Creating explorer tables if not exists")

    try:
        with open(schema_path, 'r') as f:
            schema_sql = f.read()

        for statement in split_statements(schema_sql):
            try:
                client.command(statement)
            except Exception as e:
                if "already exists" in str(e).lower():
                    logger.debug(f"Object already exists, skipping: {statement[:50]}...")
                else:
                    logger.error(f"Error executing statement: {e}")
                    logger.error(f"Statement: {statement[:100]}...")
                    raise

        logger.info(f"Explorer table initialization completed in {time.time() - start_time:.2f}s")

    except FileNotFoundError:
        logger.error(f"Schema file not found: {schema_path}")
        raise
