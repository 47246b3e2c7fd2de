"""Example verifier for PostgreSQL stored-routine tutorials.

Building blocks:

- loader: fenced SQL extraction, statement splitting and classification (pure)
- db: bookshop schema and bootstrap helpers
- storage: ephemeral PostgreSQL sandbox (SQLAlchemy)
- execution: per-example state machine, transactions and failure propagation
- report / export: run summary and text/JSON/CSV renderings
"""

__version__ = "0.1.0"
