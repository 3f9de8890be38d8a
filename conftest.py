"""Root pytest configuration.

Environment has to be settled before ``libs.db.config`` builds its engine at
import time, so this runs ahead of every test module.
"""

import os

from dotenv import load_dotenv

# Optional overrides for local runs (e.g. a Postgres DATABASE_URL)
env_test_path = os.path.join(os.path.dirname(__file__), ".env.test")
if os.path.exists(env_test_path):
    load_dotenv(env_test_path, override=True)

os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///"
    + os.path.join(os.path.dirname(os.path.abspath(__file__)), ".pytest_looper.db"),
)
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")
os.environ["PAYSTACK_SECRET_KEY"] = ""
os.environ["REFUND_TO_WALLET"] = "true"
os.environ["PRICE_FLOOR_NGN"] = "0"
