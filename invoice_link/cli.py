"""Command-line interface for invoice links.

Usage:
    invoice-link encode invoice.json [--embed-totals] [--random-dust]
    invoice-link decode <payload-or-url> [--verify-totals]
    invoice-link totals <payload-or-url-or-file> [--raw]
    invoice-link url invoice.json [--base-url URL] [--og] [--query]

Every command that takes an invoice accepts a JSON file (``-`` for stdin),
a full link or a bare payload.
"""

import argparse
import json
import logging
import os
import sys
from collections.abc import Sequence

from invoice_link.codec.decoder import decode_invoice
from invoice_link.codec.encoder import coerce_invoice, encode_invoice
from invoice_link.codec.errors import InvoiceCodecError
from invoice_link.schema.models import Invoice
from invoice_link.shared.config import Settings, get_settings
from invoice_link.totals.amounts import generate_magic_dust
from invoice_link.totals.engine import embed_totals, invoice_raw_totals, invoice_totals
from invoice_link.urls.generator import decode_invoice_url, generate_invoice_url

logger = logging.getLogger(__name__)


def load_invoice(source: str, settings: Settings, verify_totals: bool | None = None) -> Invoice:
    """Load an invoice from a JSON file, stdin, a link or a bare payload."""
    if source == "-":
        return coerce_invoice(json.load(sys.stdin))
    if os.path.isfile(source):
        with open(source, encoding="utf-8") as f:
            return coerce_invoice(json.load(f))
    if "://" in source:
        return decode_invoice_url(source, settings=settings, verify_totals=verify_totals)
    return decode_invoice(source, settings=settings, verify_totals=verify_totals)


def _prepare(invoice: Invoice, args: argparse.Namespace) -> Invoice:
    if args.random_dust:
        return embed_totals(invoice, generate_magic_dust())
    if args.magic_dust is not None:
        return embed_totals(invoice, args.magic_dust)
    if args.embed_totals:
        return embed_totals(invoice)
    return invoice


def _cmd_encode(args: argparse.Namespace, settings: Settings) -> None:
    invoice = _prepare(load_invoice(args.source, settings), args)
    print(encode_invoice(invoice, settings=settings))


def _cmd_decode(args: argparse.Namespace, settings: Settings) -> None:
    invoice = load_invoice(args.source, settings, verify_totals=args.verify_totals or None)
    print(json.dumps(invoice.to_dict(), indent=2, ensure_ascii=False))


def _cmd_totals(args: argparse.Namespace, settings: Settings) -> None:
    invoice = load_invoice(args.source, settings)
    totals = invoice_raw_totals(invoice) if args.raw else invoice_totals(invoice)
    print(json.dumps(totals.model_dump(exclude_none=True), indent=2))


def _cmd_url(args: argparse.Namespace, settings: Settings) -> None:
    invoice = _prepare(load_invoice(args.source, settings), args)
    print(
        generate_invoice_url(
            invoice,
            base_url=args.base_url,
            include_og=args.og,
            use_fragment=not args.query,
            settings=settings,
        )
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="invoice-link", description="Encode and decode shareable invoice links"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    totals_options = argparse.ArgumentParser(add_help=False)
    totals_options.add_argument(
        "--embed-totals",
        action="store_true",
        help="Embed the computed total into the payload",
    )
    dust = totals_options.add_mutually_exclusive_group()
    dust.add_argument(
        "--magic-dust",
        type=int,
        default=None,
        help="Embed totals with this many atomic units of magic dust",
    )
    dust.add_argument(
        "--random-dust",
        action="store_true",
        help="Embed totals with random magic dust (1-999 atomic units)",
    )

    encode = subparsers.add_parser("encode", parents=[totals_options], help="Encode an invoice")
    encode.add_argument("source", help="Invoice JSON file ('-' for stdin), link or payload")
    encode.set_defaults(handler=_cmd_encode)

    decode = subparsers.add_parser("decode", help="Decode a link or payload to JSON")
    decode.add_argument("source", help="Link or payload")
    decode.add_argument(
        "--verify-totals",
        action="store_true",
        help="Reject payloads whose embedded total disagrees with the items",
    )
    decode.set_defaults(handler=_cmd_decode)

    totals = subparsers.add_parser("totals", help="Show invoice totals")
    totals.add_argument("source", help="Invoice JSON file, link or payload")
    totals.add_argument("--raw", action="store_true", help="Print atomic units")
    totals.set_defaults(handler=_cmd_totals)

    url = subparsers.add_parser("url", parents=[totals_options], help="Generate a link")
    url.add_argument("source", help="Invoice JSON file ('-' for stdin), link or payload")
    url.add_argument("--base-url", default=None, help="Application origin")
    url.add_argument("--og", action="store_true", help="Include the social preview parameter")
    url.add_argument(
        "--query",
        action="store_true",
        help="Put the payload in the 'd' query parameter instead of the fragment",
    )
    url.set_defaults(handler=_cmd_url)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format="%(levelname)s: %(message)s")

    try:
        args.handler(args, settings)
    except InvoiceCodecError as e:
        print(f"error [{e.code}]: {e}", file=sys.stderr)
        return 1
    except (OSError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
