"""rawpb command-line interface.

Usage:
    python3 -m rawpb decode --input payload.bin
    echo CAE= | python3 -m rawpb decode --base64
    python3 -m rawpb decode --hex --input dump.txt --no-round
    echo '{"1/number": 1}' | python3 -m rawpb encode --hex
    python3 -m rawpb encode --input message.json --output payload.bin
    python3 -m rawpb version
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from . import (
    DEFAULT_FLOAT_PRECISION,
    PbError,
    __version__,
    decode,
    decode_base64,
    decode_hex,
    encode,
    encode_base64,
    encode_hex,
    from_json,
    to_json,
)

log = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rawpb",
        description="rawpb: decode and encode protobuf payloads without a schema",
    )
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable debug logging")
    sub = parser.add_subparsers(dest="command")

    # ── decode ──
    dec_p = sub.add_parser("decode", help="Wire bytes -> JSON")
    dec_p.add_argument("--input", "-i", metavar="FILE",
                       help="Read the payload from FILE instead of stdin")
    dec_fmt = dec_p.add_mutually_exclusive_group()
    dec_fmt.add_argument("--base64", action="store_true", help="Input is base64 text")
    dec_fmt.add_argument("--hex", action="store_true", help="Input is a hex dump")
    dec_round = dec_p.add_mutually_exclusive_group()
    dec_round.add_argument("--precision", type=int, default=DEFAULT_FLOAT_PRECISION,
                           metavar="N",
                           help="Round doubles/floats to N decimal places (default: %(default)s)")
    dec_round.add_argument("--no-round", action="store_true",
                           help="Keep exact IEEE-754 values")
    dec_p.add_argument("--indent", type=int, default=2, metavar="N",
                       help="JSON indentation (default: %(default)s)")

    # ── encode ──
    enc_p = sub.add_parser("encode", help="JSON -> wire bytes")
    enc_p.add_argument("--input", "-i", metavar="FILE",
                       help="Read JSON from FILE instead of stdin")
    enc_p.add_argument("--output", "-o", metavar="FILE",
                       help="Write to FILE instead of stdout")
    enc_fmt = enc_p.add_mutually_exclusive_group()
    enc_fmt.add_argument("--base64", action="store_true", help="Emit base64 text")
    enc_fmt.add_argument("--hex", action="store_true", help="Emit a hex string")

    # ── version ──
    sub.add_parser("version", help="Print version and exit")

    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def _read_input(filepath: Optional[str]) -> bytes:
    """Read bytes from a file or stdin."""
    if filepath:
        with open(filepath, "rb") as f:
            return f.read()
    if sys.stdin.isatty():
        print("rawpb: reading from stdin (Ctrl-D to end)...", file=sys.stderr)
    return sys.stdin.buffer.read()


def _cmd_decode(args: argparse.Namespace) -> None:
    raw = _read_input(args.input)
    precision = None if args.no_round else args.precision
    log.debug("decoding %d input bytes", len(raw))

    if args.base64:
        value = decode_base64(raw, float_precision=precision)
    elif args.hex:
        value = decode_hex(raw.decode("ascii", errors="replace"), float_precision=precision)
    else:
        value = decode(raw, float_precision=precision)
    print(to_json(value, indent=args.indent))


def _cmd_encode(args: argparse.Namespace) -> None:
    value = from_json(_read_input(args.input))

    if args.base64:
        out = (encode_base64(value) + "\n").encode("ascii")
    elif args.hex:
        out = (encode_hex(value) + "\n").encode("ascii")
    else:
        out = encode(value)
    log.debug("encoded %d output bytes", len(out))

    if args.output:
        with open(args.output, "wb") as f:
            f.write(out)
    else:
        sys.stdout.buffer.write(out)
        sys.stdout.flush()


def main(argv: Optional[List[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    configure_logging(args.verbose)

    if args.command == "version":
        print(f"rawpb {__version__}")
        return

    try:
        if args.command == "decode":
            _cmd_decode(args)
        elif args.command == "encode":
            _cmd_encode(args)
    except PbError as e:
        print(f"rawpb: error [{e.code}]: {e}", file=sys.stderr)
        sys.exit(2)
    except OSError as e:
        print(f"rawpb: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
