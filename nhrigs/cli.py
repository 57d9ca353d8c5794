from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional

from .config import DEFAULT_CONFIG_PATH, ConfigError, load_config
from .core import (
    RemoteAPIError,
    build_auth_headers,
    create_signature,
    generate_nonce,
    get_rigs,
    now_ms,
)
from .report import build_report
from .server import serve


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="NiceHash mining rig status page. Credentials come from NICEHASH_* env vars, .env or nhrigs-conf.json."
    )
    parser.add_argument("--config", "-c", default=DEFAULT_CONFIG_PATH, help=f"Path to JSON config (default: {DEFAULT_CONFIG_PATH})")
    parser.add_argument("--env-file", help="Path to .env file (default: .env in the current directory or its parents)")
    parser.add_argument("--timeout", type=float, help="NiceHash API timeout seconds (default 10)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="action", required=True)

    sp = sub.add_parser("serve", help="Run the status page web server")
    sp.add_argument("--host", help="Bind address (default 0.0.0.0)")
    sp.add_argument("--port", type=int, help="Listen port (default 3000, or $PORT)")
    sp.add_argument("--debug", action="store_true", help="Run Flask in debug mode")

    rp = sub.add_parser("rigs", help="Fetch rigs once and print the report as JSON")
    rp.add_argument("--raw", action="store_true", help="Print the raw API response instead of the report")
    rp.add_argument("--save-response", help="Save raw response JSON to file")

    sg = sub.add_parser("sign", help="Compute the X-Auth token for a request (for debugging)")
    sg.add_argument("method", help="HTTP method, e.g. GET")
    sg.add_argument("endpoint", help="Request path, e.g. /main/api/v2/mining/rigs2")
    sg.add_argument("--time", type=int, help="Timestamp in milliseconds (default: now)")
    sg.add_argument("--nonce", help="Nonce (default: random)")
    sg.add_argument("--query", help="Pre-encoded query string")
    sg.add_argument("--body", help="Raw request body")
    sg.add_argument("--show-request", action="store_true", help="Print the full header set instead of the token only")

    return parser


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = build_parser()
    return parser.parse_args(argv)


def _redact_headers(headers: dict) -> dict:
    shown = dict(headers)
    key, _, digest = shown["X-Auth"].partition(":")
    shown["X-Auth"] = f"{key}:{digest[:8]}..."
    return shown


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(
            args.config,
            env_file=args.env_file,
            timeout=args.timeout,
            host=getattr(args, "host", None),
            port=getattr(args, "port", None),
        )
    except ConfigError as exc:
        print("Error:", exc, file=sys.stderr)
        build_parser().print_help()
        return 2

    if args.action == "serve":
        serve(config, debug=args.debug)
        return 0

    if args.action == "rigs":
        try:
            data = get_rigs(config)
        except RemoteAPIError as exc:
            print("Error while calling API:", exc, file=sys.stderr)
            return 1
        out = data if args.raw else build_report(data)
        print(json.dumps(out, indent=2, ensure_ascii=False))
        if args.save_response:
            with open(args.save_response, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            print("Saved response to", args.save_response)
        return 0

    if args.action == "sign":
        credentials = config.credentials
        ts = args.time if args.time is not None else now_ms()
        nonce = args.nonce or generate_nonce()
        if args.show_request:
            headers = build_auth_headers(credentials, args.method, args.endpoint, ts, nonce, query=args.query, body=args.body, lang=config.lang)
            print("=== Request headers ===")
            print(json.dumps(_redact_headers(headers), indent=2, ensure_ascii=False))
            print("=======================")
        else:
            print(create_signature(args.method, args.endpoint, ts, nonce, credentials, query=args.query, body=args.body))
    return 0


if __name__ == "__main__":
    sys.exit(main())
