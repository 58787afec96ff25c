"""
Commerce PayPal Checkout API -- Database connection pool

Uses mysql-connector-python with a connection pool for concurrent requests.
The orders/cart tables belong to the shop; this service owns only
`commerce_order_payments`.
"""

import mysql.connector
from mysql.connector import pooling
import config

_connection_pool = None


def get_connection_pool():
  """Get or create the MySQL connection pool (lazy init)."""
  global _connection_pool
  if _connection_pool is None:
    _connection_pool = pooling.MySQLConnectionPool(
      pool_name="commerce_paypal_pool",
      pool_size=config.MYSQL_POOL_SIZE,
      pool_reset_session=True,
      host=config.MYSQL_HOST,
      port=config.MYSQL_PORT,
      user=config.MYSQL_USER,
      password=config.MYSQL_PASSWORD,
      database=config.MYSQL_DATABASE,
      charset="utf8mb4",
      collation="utf8mb4_unicode_ci",
      autocommit=False,
    )
  return _connection_pool


def get_database_connection():
  """Get a connection from the pool. Caller must close it when done."""
  pool = get_connection_pool()
  return pool.get_connection()


def execute_query_returning_one_row(query, params=None):
  """Execute a SELECT query and return a single row as dict, or None."""
  connection = get_database_connection()
  try:
    cursor = connection.cursor(dictionary=True)
    cursor.execute(query, params)
    row = cursor.fetchone()
    cursor.close()
    return row
  finally:
    connection.close()


def execute_query_returning_all_rows(query, params=None):
  """Execute a SELECT query and return all rows as list of dicts."""
  connection = get_database_connection()
  try:
    cursor = connection.cursor(dictionary=True)
    cursor.execute(query, params)
    rows = cursor.fetchall()
    cursor.close()
    return rows
  finally:
    connection.close()


def execute_insert_or_update(query, params=None):
  """Execute an INSERT/UPDATE and commit. Returns (lastrowid, rowcount)."""
  connection = get_database_connection()
  try:
    cursor = connection.cursor()
    cursor.execute(query, params)
    connection.commit()
    result = (cursor.lastrowid, cursor.rowcount)
    cursor.close()
    return result
  finally:
    connection.close()


def execute_guarded_statements_in_transaction(guard_query, guard_params, followup_statements):
  """
  Run a guarded UPDATE and, only if it touched exactly one row, the
  follow-up statements -- all in one transaction.

  The guard is a conditional UPDATE (e.g. "... WHERE status = 'created'")
  so the row lock it takes serialises concurrent callers: the second caller
  sees rowcount 0 and nothing else runs.

  followup_statements is a list of (query, params) tuples.
  Returns True if the guard matched and everything committed, False if the
  guard matched no row (transaction rolled back). Rolls back on any failure.
  """
  connection = get_database_connection()
  try:
    cursor = connection.cursor()
    cursor.execute(guard_query, guard_params)
    if cursor.rowcount != 1:
      connection.rollback()
      cursor.close()
      return False
    for query, params in followup_statements:
      cursor.execute(query, params)
    connection.commit()
    cursor.close()
    return True
  except Exception:
    connection.rollback()
    raise
  finally:
    connection.close()
