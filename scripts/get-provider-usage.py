#!/usr/bin/env python3
"""
Show daily provider call counts recorded by the usage governor.

Reads the Firestore counter documents ({provider}_{YYYY-MM-DD}) written by
UsageGovernor and prints usage against each provider's daily limit.
"""

import os
import sys
from datetime import datetime, timedelta, timezone

from google.cloud import firestore


def get_provider_usage(project_id, days=7, collection="api_usage", database="(default)"):
    """
    Print per-day usage for the last N days.

    Returns:
        dict of date -> {provider: (calls, daily_limit)}
    """
    db = firestore.Client(project=project_id, database=database)
    today = datetime.now(timezone.utc).date()
    since = (today - timedelta(days=days - 1)).strftime("%Y-%m-%d")

    print(f"📊 Provider usage for {project_id} ({database}) since {since}\n")

    usage = {}
    for doc in db.collection(collection).where("date", ">=", since).stream():
        data = doc.to_dict()
        usage.setdefault(data["date"], {})[data["provider"]] = (
            data.get("calls", 0),
            data.get("daily_limit", 0),
        )

    if not usage:
        print("⚠️  No usage recorded in this period")
        return usage

    for date in sorted(usage, reverse=True):
        print(date)
        for provider, (calls, limit) in sorted(usage[date].items()):
            pct = (calls / limit * 100) if limit else 0
            marker = "🚫" if limit and calls >= limit else "✅"
            print(f"  {marker} {provider}: {calls}/{limit} ({pct:.0f}%)")

    return usage


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: get-provider-usage.py <project_id> [days] [database]")
        sys.exit(1)

    project_id = sys.argv[1]
    days = int(sys.argv[2]) if len(sys.argv) > 2 else 7
    database = sys.argv[3] if len(sys.argv) > 3 else os.environ.get("FIRESTORE_DATABASE_ID", "(default)")
    collection = os.environ.get("FIRESTORE_USAGE_COLLECTION", "api_usage")

    get_provider_usage(project_id, days, collection=collection, database=database)
