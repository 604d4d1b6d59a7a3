#!/usr/bin/env python3
"""
Threadboard -- discussion boards with threaded replies and social login.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080
  python main.py serve --reload
  python main.py seed
  python main.py token 1

Environment variables (or .env):
  JWT_SECRET     Required unless DEBUG=true. At least 64 bytes.
  DATABASE_URL   SQLAlchemy URL. Defaults to threadboard.db beside this file.
  GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET, NAVER_CLIENT_ID / NAVER_CLIENT_SECRET
                 Enable the matching social login button.
"""

import argparse
import sys


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _seed(args: argparse.Namespace) -> int:
    from board.seed import seed_boards
    from board.store import BoardStore

    store = BoardStore()
    try:
        inserted = seed_boards(store)
    finally:
        store.close()
    print(f"Inserted {inserted} sample posts." if inserted else "Boards already present; nothing to do.")
    return 0


def _token(args: argparse.Namespace) -> int:
    """Print a session token for an existing user. Handy for curl and /docs."""
    from auth.provisioning import UserProvisioner
    from auth.store import UserStore
    from auth.tokens import get_token_codec

    store = UserStore()
    try:
        token = UserProvisioner(store).issue_token(get_token_codec(), args.user_id)
    except ValueError as e:
        print(f"  [!] {e}", file=sys.stderr)
        return 1
    finally:
        store.close()
    print(token)
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="threadboard",
        description="Discussion boards with threaded replies and social login.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --reload
  python main.py seed
  python main.py token 1
  curl -H "Authorization: Bearer $(python main.py token 1)" localhost:8000/api/v1/boards
        """,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the web server with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development)")
    serve.set_defaults(func=_serve)

    seed = sub.add_parser("seed", help="Insert sample board posts into an empty database")
    seed.set_defaults(func=_seed)

    token = sub.add_parser("token", help="Mint a session token for an existing user")
    token.add_argument("user_id", type=int, metavar="USER_ID", help="Numeric id of an active user")
    token.set_defaults(func=_token)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
