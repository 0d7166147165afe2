"""
Ingestion layer — CSV import of historical inputs into the data source.

Submodules:
  history_csv — parsers for transaction, market price and sentiment CSV files

Parsed rows are written through ``SqliteHistoricalDataSource`` by the
``import-history`` CLI command.
"""
