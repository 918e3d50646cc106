"""
Purpose:
- `visionary describe PATH` : describe one image from the terminal (same client as the API).
- `visionary serve`         : run the web UI + API under uvicorn.
"""

from __future__ import annotations
import argparse
import sys
from typing import List, Optional

from .codec.image_codec import read_image
from .core.errors import VisionaryError
from .core.logging import setup_logging
from .core.settings import settings
from .vlm.ollama_client import DescriptionClient


def initialize_argparser():
    """Initialize the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="visionary",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.description = "Describe images with a local Ollama vision model."
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level")
    sub = parser.add_subparsers(dest="command", required=True)

    desc = sub.add_parser("describe", help="Describe a single image file",
                          formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    desc.add_argument("path", help="Image file to describe")
    desc.add_argument("--url", default=settings.ollama_url, help="Ollama base URL")
    desc.add_argument("--model", default=settings.ollama_model, help="Ollama model name")
    desc.add_argument("--timeout", type=float, default=settings.ollama_timeout,
                      help="Request timeout in seconds (default: wait forever)")

    serve = sub.add_parser("serve", help="Run the web UI and API",
                           formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    serve.add_argument("--host", default=settings.host)
    serve.add_argument("--port", type=int, default=settings.port)

    return parser


def _describe(args) -> int:
    client = DescriptionClient(base_url=args.url, model=args.model,
                               prompt=settings.prompt, timeout=args.timeout)
    try:
        record = read_image(args.path)
        text = client.describe(record)
    except VisionaryError as e:
        print(f"Failed to generate description. {e.message}", file=sys.stderr)
        return 1
    finally:
        client.close()
    print(text)
    return 0


def _serve(args) -> int:
    import uvicorn

    uvicorn.run("visionary.main:app", host=args.host, port=args.port)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = initialize_argparser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)
    if args.command == "describe":
        return _describe(args)
    return _serve(args)


if __name__ == "__main__":
    sys.exit(main())
