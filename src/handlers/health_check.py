"""Lightweight health check handler."""

import os
import json
from datetime import datetime, timezone


def lambda_handler(event, context):
    """
    Return a 200 response to verify the stack is alive.

    Reports whether a database location is configured without opening a
    connection, so the check stays cheap on cold starts.
    """
    database_configured = bool(os.environ.get("DATABASE_URL") or os.environ.get("DB_SECRET_ARN"))
    return {
        "statusCode": 200,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(
            {
                "status": "ok",
                "service": "customer-analytics",
                "environment": os.environ.get("ENVIRONMENT", "dev"),
                "database": "configured" if database_configured else "not configured",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        ),
    }
