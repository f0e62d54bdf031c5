# api/index.py
"""
Vercel entry point for the EZFOIA API.

Vercel's Python runtime serves the ASGI `app` exported here, so every
/api/* endpoint of ezfoia.app runs behind this one function.
"""
import os
import sys

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

# No scraper reaches a serverless instance; /metrics stays off unless asked for.
os.environ.setdefault("PROMETHEUS_ENABLED", "false")

# Production sets DATABASE_URL to the Supabase Postgres connection string. Preview
# deployments without it get a throwaway SQLite file in /tmp.
if not os.environ.get("DATABASE_URL"):
    os.environ["DATABASE_URL"] = "sqlite:////tmp/ezfoia.db"

# Supabase, Stripe, Resend and AI gateway secrets come from the Vercel project
# settings; a local .env fills them in for `vercel dev`.
from dotenv import load_dotenv
load_dotenv(os.path.join(ROOT, ".env"), override=True)

from ezfoia.app import app  # noqa: F401, E402
