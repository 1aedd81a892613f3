#!/usr/bin/env python3
"""
Catalog API -- key tooling and server launcher.

Usage:
  python main.py keygen
  python main.py keygen --bits 4096 --private-out consumer.key
  python main.py fingerprint consumer.pub
  python main.py fingerprint consumer.pub --long
  python main.py serve --host 0.0.0.0 --port 8000

keygen prints the base64 public key a consumer submits as accessKey.
fingerprint accepts a PEM or DER public key file, or a file holding the
base64 text of one, and prints the fingerprint the API will report for it.

Environment variables are read through core.config (API_KEY_BITS, DB_URL,
LOG_LEVEL, ...). See core/config.py for the full list.
"""

import argparse
import sys
from pathlib import Path

from consumers.keys import KeyPairService, decode, fingerprint
from core.errors import InvalidKeyFormat, NotAPublicKey


def _read_key_file(path: str) -> bytes:
    """Read a key file, returning raw PEM/DER bytes.

    Files that hold base64 text (what the API accepts) are decoded first.
    """
    file_path = Path(path).resolve()
    if not file_path.is_file():
        raise InvalidKeyFormat(f"'{path}' is not a readable file.")
    data = file_path.read_bytes()
    if data.lstrip().startswith(b"-----BEGIN"):
        return data
    try:
        return decode(data.decode("ascii"))
    except (UnicodeDecodeError, InvalidKeyFormat):
        return data


def cmd_keygen(args: argparse.Namespace) -> int:
    keys = KeyPairService(bits=args.bits)
    pair = keys.generate()
    if args.private_out:
        out = Path(args.private_out)
        out.write_bytes(decode(pair.private))
        out.chmod(0o600)
        print(f"  Private key written to {out}", file=sys.stderr)
    print(f"  Fingerprint: {pair.fingerprint}", file=sys.stderr)
    print(pair.public)
    return 0


def cmd_fingerprint(args: argparse.Namespace) -> int:
    keys = KeyPairService()
    try:
        pair = keys.import_public(_read_key_file(args.path))
    except (InvalidKeyFormat, NotAPublicKey) as exc:
        print(f"  [!] {exc.message} {exc.detail or ''}".rstrip(), file=sys.stderr)
        return 1
    if args.long:
        print(fingerprint(decode(pair.public), short=False))
    else:
        print(pair.fingerprint)
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="catalog-api",
        description="Key tooling and server launcher for the Catalog API.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py keygen --private-out consumer.key > consumer.pub.b64
  python main.py fingerprint consumer.pub.b64
  python main.py serve --port 8080
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    keygen = sub.add_parser("keygen", help="Generate an RSA keypair and print the base64 public key")
    keygen.add_argument("--bits", type=int, default=None, help="Modulus size (default: API_KEY_BITS)")
    keygen.add_argument("--private-out", metavar="PATH", help="Write the private key PEM to PATH")
    keygen.set_defaults(func=cmd_keygen)

    fp = sub.add_parser("fingerprint", help="Print the fingerprint of a public key file")
    fp.add_argument("path", metavar="PATH", help="PEM, DER, or base64 public key file")
    fp.add_argument("--long", action="store_true", help="Print the full 32-byte fingerprint")
    fp.set_defaults(func=cmd_fingerprint)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes")
    serve.set_defaults(func=cmd_serve)
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 0
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
