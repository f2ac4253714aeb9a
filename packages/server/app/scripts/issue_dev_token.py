"""
Print a signed development JWT shaped like the identity provider's.

    python -m app.scripts.issue_dev_token --user-id <uuid> --role maintenance --verified
"""

import argparse
import uuid
from datetime import timedelta

from app.core.auth import create_jwt


def main(argv=None) -> str:
    parser = argparse.ArgumentParser(description="Issue a development session token.")
    parser.add_argument("--user-id", type=uuid.UUID, default=None, help="User id (random if omitted)")
    parser.add_argument("--role", default="store", help="Account role metadata: store | maintenance")
    parser.add_argument("--email", default=None, help="Email claim")
    parser.add_argument("--verified", action="store_true", help="Mark the email as verified")
    parser.add_argument("--minutes", type=int, default=60, help="Token lifetime in minutes")

    args = parser.parse_args(argv)
    user_id = args.user_id or uuid.uuid4()
    token, _ = create_jwt(
        user_id,
        args.role,
        email=args.email,
        email_verified=args.verified,
        expires_delta=timedelta(minutes=args.minutes),
    )
    print(f"user_id: {user_id}")
    print(f"Authorization: Bearer {token}")
    return token


if __name__ == "__main__":
    main()
