"""
constants.py
- Project-wide constants shared across the catalog, executor and runner code.
- Includes connection defaults, probe retry timing, and statement templates.
"""

# --- Connection Defaults ---
DEFAULT_HTTP_PORT = 8123  # ClickHouse HTTP interface
DEFAULT_SSH_PORT = 22
DEFAULT_CONNECT_TIMEOUT = 10  # seconds, connection establishment only
DEFAULT_DATABASE = "default"
DEFAULT_CATALOG_USER = "default"
DEFAULT_OS_USER = "root"

# --- Connection Probe Retries ---
PROBE_ATTEMPTS = 3
PROBE_WAIT_MIN = 1  # seconds
PROBE_WAIT_MAX = 8

# --- Catalog Statements ---
PARTITION_SIZES_SQL = (
    "SELECT partition_id, sum(data_compressed_bytes) AS compressed "
    "FROM system.parts "
    "WHERE database = '{database}' AND table = '{table}' AND active = 1 "
    "GROUP BY partition_id ORDER BY partition_id "
    "FORMAT TabSeparated"
)
DETACH_PARTITION_SQL = "ALTER TABLE `{database}`.`{table}` DETACH PARTITION ID '{partition}'"
ATTACH_PARTITION_SQL = "ALTER TABLE `{database}`.`{table}` ATTACH PARTITION ID '{partition}'"

# --- Staging Layout ---
STAGING_DIR_TEMPLATE = "{data_dir}/data/{database}/{table}/detached"
