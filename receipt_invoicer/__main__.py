"""
Command-line entry point.

Usage:
    python -m receipt_invoicer serve [--host 127.0.0.1] [--port 8000]
    python -m receipt_invoicer extract <path_to_receipt_image>
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from receipt_invoicer.config import Settings
from receipt_invoicer.errors import EncodeError, ExtractionError
from receipt_invoicer.graph.nodes.encode import guess_mime_type
from receipt_invoicer.graph.nodes.extract import ExtractionClient
from receipt_invoicer.graph.state import ReceiptImage
from receipt_invoicer.graph.workflow import build_graph, run_extraction


def _configure_logging() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("receipt_invoicer.main:app", host=args.host, port=args.port, log_level=os.getenv("LOG_LEVEL", "info").lower())
    return 0


def _extract(args: argparse.Namespace) -> int:
    path = Path(args.image)
    try:
        data = path.read_bytes()
    except OSError as e:
        print(f"ERROR: could not read {path}: {e}", file=sys.stderr)
        return 1

    settings = Settings.from_env()
    image = ReceiptImage(
        filename=path.name,
        content_type=guess_mime_type(path.name),
        data=data,
        handle="cli",
    )
    app_graph = build_graph(ExtractionClient(settings))
    try:
        items = asyncio.run(run_extraction(app_graph, image))
    except (EncodeError, ExtractionError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    rows = [item.model_dump(include={"name", "amount"}) for item in items]
    print(json.dumps(rows, ensure_ascii=False, indent=2, default=str))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv(override=False)
    _configure_logging()

    parser = argparse.ArgumentParser(prog="receipt_invoicer", description=__doc__.splitlines()[1])
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="run the web app")
    serve.add_argument("--host", default=os.getenv("HOST", "127.0.0.1"))
    serve.add_argument("--port", type=int, default=int(os.getenv("PORT", "8000")))
    serve.set_defaults(func=_serve)

    extract = sub.add_parser("extract", help="print the line items found in a receipt image")
    extract.add_argument("image")
    extract.set_defaults(func=_extract)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
