"""Command-line driver: build an asset kit against a running Jewelkit API.

Usage::

    jewelkit-kit ring.jpg earring.png --reference mood.jpg --api-url http://127.0.0.1:3000

With ``--prompt`` only the first image is sent, together with the prompt,
and the URL of the single generated image is printed instead of a kit::

    jewelkit-kit ring.jpg --prompt "Ring on a marble pedestal at golden hour"
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from jewelkit.core.config import config
from jewelkit.pipeline.client import StudioApiClient
from jewelkit.pipeline.export import build_ecommerce_prompt
from jewelkit.pipeline.models import ProgressState
from jewelkit.pipeline.session import GenerationSession

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="jewelkit-kit",
        description="Upload jewelry photos and generate a complete e-commerce asset kit.",
    )
    parser.add_argument("images", nargs="+", help="Primary jewelry images")
    parser.add_argument(
        "-r",
        "--reference",
        action="append",
        default=[],
        help="Style reference image (repeatable)",
    )
    parser.add_argument(
        "-p",
        "--prompt",
        help="Generate one image from the first image and this prompt instead of a full kit",
    )
    parser.add_argument("--api-url", default=config.api_base_url, help="Jewelkit API base URL")
    return parser.parse_args(argv)


def _print_progress(state: ProgressState | None) -> None:
    if state is None:
        return
    print(f"[{state.completed}/{state.total}] {state.stage}: {state.message}", file=sys.stderr)


async def _run(args: argparse.Namespace) -> int:
    async with StudioApiClient(config, base_url=args.api_url) as api:
        with GenerationSession(api, config, progress_listener=_print_progress) as session:
            session.add_paths(args.images, role="image")
            session.add_paths(args.reference, role="reference")

            if args.prompt is not None:
                url = await session.generate_single(args.prompt)
                if url is None:
                    print(f"Error: {session.error}", file=sys.stderr)
                    return 1
                print(url)
                return 0

            result = await session.generate()
            if result is None:
                print(f"Error: {session.error}", file=sys.stderr)
                return 1
            print(build_ecommerce_prompt(result))
            return 0


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    args = _parse_args(argv)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
