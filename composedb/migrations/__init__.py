"""Database migration system for composedb.

Tracks the schema version and applies migrations sequentially.
Each migration is a Python module `m_NNN_description.py` with an
`upgrade()` async function. The catalog is append-only: never edit,
renumber or remove a module once it has shipped.

`upgrade()` runs inside the runner's transaction. It must use
`db.execute()` only: no commit, no rollback, no `executescript()`.
"""
