"""Global pytest configuration."""

import os

# The app's engine and health checks read DATABASE_URL on first use
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
