#!/usr/bin/env python3
"""
Seal session data into a cookie token, or open a token to inspect it.

Usage:
    python scripts/seal_session.py seal --data '{"user": {"id": 1}}' [--ttl 3600]
    python scripts/seal_session.py unseal --token 'Fe26.2*...~2' [--ttl 3600]

The password comes from --password or SESSION_SECRET_KEY (`1:aaa,2:bbb`
for a rotation map). `unseal` exits with status 1 when the token yields an
empty session (expired, tampered or sealed with another password).
"""
from __future__ import annotations

import argparse
import json
import os
import sys
from collections.abc import Sequence

from cookieseal.config import parse_secret
from cookieseal.domain.errors import ConfigurationError
from cookieseal.domain.options import FOURTEEN_DAYS_IN_SECONDS
from cookieseal.services.codec import decode_token, encode_token


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Seal or unseal cookie session tokens")
    p.add_argument("--password", default=os.getenv("SESSION_SECRET_KEY"))
    p.add_argument("--ttl", type=int, default=FOURTEEN_DAYS_IN_SECONDS, help="seconds, 0 = never expires")
    sub = p.add_subparsers(dest="command", required=True)

    seal = sub.add_parser("seal", help="seal JSON data into a token")
    seal.add_argument("--data", required=True, help="JSON object to seal")

    unseal = sub.add_parser("unseal", help="print the JSON sealed in a token")
    unseal.add_argument("--token", required=True)
    return p.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    if not args.password:
        print("error: --password or SESSION_SECRET_KEY is required", file=sys.stderr)
        return 2
    password = parse_secret(args.password)

    try:
        if args.command == "seal":
            print(encode_token(json.loads(args.data), password, args.ttl))
            return 0

        data = decode_token(args.token, password, args.ttl)
    except (ConfigurationError, json.JSONDecodeError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    print(json.dumps(data, ensure_ascii=False, indent=2))
    return 0 if data else 1


if __name__ == "__main__":
    raise SystemExit(main())
