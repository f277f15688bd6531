#!/usr/bin/env python
"""Grant admin rights to an existing user.

The user must have signed in at least once (so their row and public id exist).
Accepts either the account email or the public id.

Constraints:
- Idempotent: promoting an admin again is a no-op
- Never runs automatically (manual invocation only)

Usage:
    cd python && DATABASE_URL=... uv run python ../scripts/promote_admin.py owner@example.com
    cd python && DATABASE_URL=... uv run python ../scripts/promote_admin.py usr-00001
"""

import os
import sys


def main():
    if len(sys.argv) != 2:
        print("Usage: promote_admin.py <email | public id>")
        sys.exit(2)

    if not os.getenv("DATABASE_URL"):
        print("ERROR: DATABASE_URL environment variable must be set")
        sys.exit(1)

    from memoryhaze.db.session import get_session_factory
    from memoryhaze.errors import NotFoundError
    from memoryhaze.logging import configure_logging
    from memoryhaze.services.bootstrap import promote_admin

    configure_logging(json_format=False)

    db = get_session_factory()()
    try:
        user = promote_admin(db, sys.argv[1])
    except NotFoundError as e:
        print(f"ERROR: {e.message}")
        sys.exit(1)
    finally:
        db.close()

    print(f"{user.public_id} ({user.email or 'no email'}) is an admin")


if __name__ == "__main__":
    main()
