from __future__ import annotations

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from backend.spothunt.main import app  # noqa: E402


def main() -> int:
    schema = app.openapi()
    paths = schema.get("paths", {})
    required_paths = [
        "/api/health",
        "/api/submissions",
        "/api/leaderboard",
        "/api/users/me/standing",
        "/api/admin/challenges/{challenge_id}",
    ]

    missing = [path for path in required_paths if path not in paths]
    if missing:
        for path in missing:
            print(f"[error] OpenAPI schema has no {path} path.", file=sys.stderr)
        return 1

    print("OpenAPI required paths present")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
