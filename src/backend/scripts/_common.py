"""
Common utilities for backend scripts.

Sets up the Python path so scripts can be run directly and provides the
store lifecycle for operator tools. Import this module at the top of any
script that needs to import from the backend package.

Usage:
    import scripts._common  # noqa: F401
    # Now you can import from db, repositories, services, etc.
"""

import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

# Add backend root to path for imports
# This allows scripts to be run directly (python scripts/foo.py)
# without needing to be run as modules (python -m scripts.foo)
BACKEND_ROOT = Path(__file__).parent.parent
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from core.logging_config import configure_logging  # noqa: E402
from db.session import close_db, get_store  # noqa: E402
from db.store import DocumentStore  # noqa: E402


@asynccontextmanager
async def script_store() -> AsyncIterator[DocumentStore]:
    """Configure logging and yield the configured store, closing it afterwards."""
    configure_logging()
    store = get_store()
    try:
        yield store
    finally:
        await close_db()
