"""
Issue an API key from the command line.

Usage (from backend/):
    python -m scripts.issue_key
    python -m scripts.issue_key --user-id my-service

This will:
  1. Connect to the key store configured by REDIS_URL
  2. Generate and persist an API key for the given user id
  3. Print the raw key ONCE (only its hash is stored)

Unlike POST /keys-admin there is no fallback: if the store is unreachable
the script exits with status 1 and no key is printed.
"""

import argparse
import asyncio
import sys

# Ensure the project root is on the path
sys.path.insert(0, ".")

from readme_api.auth.dependencies import ADMIN_USER_ID
from readme_api.core.config import settings
from readme_api.core.errors import StoreUnavailable
from readme_api.core.store import build_key_store
from readme_api.services.api_keys import ApiKeyManager


async def main(user_id: str) -> int:
    store = build_key_store(settings)
    try:
        result = await ApiKeyManager(store).issue(user_id)
    except StoreUnavailable as exc:
        print(f"Could not issue a key — key store unavailable: {exc}", file=sys.stderr)
        return 1
    finally:
        await store.close()

    # ── Print results ───────────────────────────────────────
    print()
    print("=" * 60)
    print("  API Key Issued")
    print("=" * 60)
    print()
    print(f"  User ID:    {user_id}")
    print()
    print(f"  API Key:    {result.api_key}")
    print()
    print("  ⚠  Copy this key now — it will NEVER be shown again.")
    print("=" * 60)
    print()
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Issue a README Generator API key.")
    parser.add_argument("--user-id", default=ADMIN_USER_ID, help="Owner recorded on the key.")
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.user_id)))
