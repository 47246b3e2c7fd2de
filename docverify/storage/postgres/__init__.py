"""PostgreSQL sandbox and statement runner.

Notes
- We avoid logging connection URLs to prevent accidental secret leakage.
- Every run gets its own throwaway database; nothing outlives the process.
"""

from .config import PostgresConfig
from .runner import PostgresRunner
from .sandbox import Sandbox
