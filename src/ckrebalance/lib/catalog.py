"""
catalog.py
- Minimal ClickHouse catalog client over the HTTP interface.
- Reads per-partition compressed sizes from system.parts and issues
  DETACH / ATTACH PARTITION statements for the rebalancer.
"""

import requests
from loguru import logger

from ckrebalance.core import constants
from ckrebalance.core.errors import CatalogError


def _quote(value):
    """Escape a value for use inside a single-quoted ClickHouse string literal."""
    return str(value).replace("\\", "\\\\").replace("'", "\\'")


def _ident(value):
    return str(value).replace("`", "\\`")


class ClickHouseCatalog:
    """Catalog handle for one node."""

    def __init__(self, host, port=constants.DEFAULT_HTTP_PORT, user=constants.DEFAULT_CATALOG_USER,
                 password="", database=constants.DEFAULT_DATABASE,
                 connect_timeout=constants.DEFAULT_CONNECT_TIMEOUT, session=None):
        self.host = host
        self.port = port
        self.database = database
        self.url = f"http://{host}:{port}/"
        # (connect, read): no read deadline on statements
        self.timeout = (connect_timeout, None)
        self.session = session or requests.Session()
        self.session.headers.update({
            "X-ClickHouse-User": user,
            "X-ClickHouse-Key": password or "",
        })

    def execute(self, query):
        """
        Send one statement and return the raw response body.

        Raises:
            CatalogError: On transport failure or a non-2xx response.
        """
        try:
            response = self.session.post(
                self.url,
                params={"database": self.database},
                data=query.encode("utf-8"),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise CatalogError(self.host, query, e) from e
        if not response.ok:
            raise CatalogError(self.host, query, f"HTTP {response.status_code}: {response.text.strip()}")
        return response.text

    def ping(self):
        try:
            response = self.session.get(f"{self.url}ping", timeout=self.timeout)
        except requests.RequestException as e:
            raise CatalogError(self.host, "ping", e) from e
        if not response.ok or response.text.strip() != "Ok.":
            raise CatalogError(self.host, "ping", f"unexpected response {response.status_code}")

    def partition_sizes(self, table):
        """
        Return compressed bytes per active partition of `table`.

        Returns:
            dict[str, int]: partition_id -> compressed size.
        """
        query = constants.PARTITION_SIZES_SQL.format(database=_quote(self.database), table=_quote(table))
        logger.debug(f"[catalog] host: {self.host}, query: {query}")
        sizes = {}
        for line in self.execute(query).splitlines():
            if not line.strip():
                continue
            try:
                partition, compressed = line.split("\t")
                sizes[partition] = int(compressed)
            except ValueError as e:
                raise CatalogError(self.host, query, f"unparseable row {line!r}") from e
        return sizes

    def detach_partition(self, table, partition):
        query = constants.DETACH_PARTITION_SQL.format(
            database=_ident(self.database), table=_ident(table), partition=_quote(partition),
        )
        logger.info(f"[catalog] host: {self.host}, query: {query}")
        self.execute(query)

    def attach_partition(self, table, partition):
        query = constants.ATTACH_PARTITION_SQL.format(
            database=_ident(self.database), table=_ident(table), partition=_quote(partition),
        )
        logger.info(f"[catalog] host: {self.host}, query: {query}")
        self.execute(query)

    def __repr__(self):
        return f"ClickHouseCatalog({self.url}, database={self.database})"
