"""
Collaborator interfaces and their implementations.

Modules
-------
protocols : HistoricalDataSource, OutcomeStore, ParameterStore (typing.Protocol).
memory    : process-local implementations, thread-safe.
sqlite    : SQLite-backed implementations built on ``db.repositories``.
"""
