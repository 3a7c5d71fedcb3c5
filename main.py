#!/usr/bin/env python3
"""
SessionGate -- account registration, email verification, and revocable token sessions.

Usage:
  python main.py keygen
  python main.py keygen --bits 4096 >> .env
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080
  python main.py revoke alice@example.com

Environment variables:
  ACCESS_TOKEN_PRIVATE_KEY / ACCESS_TOKEN_PUBLIC_KEY    base64 PEM, access key pair
  REFRESH_TOKEN_PRIVATE_KEY / REFRESH_TOKEN_PUBLIC_KEY  base64 PEM, refresh key pair
  DATABASE_URL   SQLAlchemy URL (default: sqlite file next to the auth package)
  DEBUG          true to auto-generate ephemeral keys for development
"""

import argparse
import sys

from core.keys import encode_key, generate_key_pair


def _keygen(bits: int) -> None:
    """Print two independent key pairs as a ready-to-paste .env block."""
    for key_class in ("ACCESS", "REFRESH"):
        private_pem, public_pem = generate_key_pair(key_size=bits)
        print(f"{key_class}_TOKEN_PRIVATE_KEY={encode_key(private_pem)}")
        print(f"{key_class}_TOKEN_PUBLIC_KEY={encode_key(public_pem)}")


def _serve(host: str, port: int, reload: bool) -> None:
    import uvicorn

    uvicorn.run("asgi:app", host=host, port=port, reload=reload)


def _revoke(email: str, settings=None) -> int:
    """Invalidate every session of the account with this email. Returns the exit code."""
    from auth.credentials import normalize_email
    from auth.store import SessionStore, UserStore, build_engine
    from core.config import get_settings

    settings = settings or get_settings()
    engine = build_engine(settings.database_url, settings.store_timeout_seconds)
    try:
        user = UserStore(engine=engine).get_by_email(normalize_email(email))
        if user is None:
            print(f"  [!] No account with email '{email}'.")
            return 1
        revoked = SessionStore(engine=engine).invalidate_all(user.id)
    finally:
        engine.dispose()
    print(f"  {revoked} session(s) revoked for {user.email}.")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="sessiongate",
        description="Credential and session lifecycle service.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py keygen > .env
  python main.py serve --port 8000
  DATABASE_URL=sqlite:///prod.db python main.py revoke alice@example.com
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    keygen = sub.add_parser("keygen", help="Generate access and refresh RSA key pairs")
    keygen.add_argument(
        "--bits",
        type=int,
        default=2048,
        metavar="N",
        help="RSA modulus size in bits (default: 2048)",
    )

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development only)")

    revoke = sub.add_parser("revoke", help="Invalidate every session of an account")
    revoke.add_argument("email", help="Email address of the account")

    args = parser.parse_args()

    if args.command == "keygen":
        _keygen(args.bits)
    elif args.command == "serve":
        _serve(args.host, args.port, args.reload)
    elif args.command == "revoke":
        sys.exit(_revoke(args.email))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
