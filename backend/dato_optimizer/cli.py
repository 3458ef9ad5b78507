from __future__ import annotations

import argparse
import json
import logging
import sys

from dato_optimizer.core.config import Settings, settings as default_settings
from dato_optimizer.core.errors import AssetReplacementError, ConfigurationError
from dato_optimizer.services.asset_replacer import build_strategy
from dato_optimizer.services.content_store import ContentStoreClient
from dato_optimizer.services.imgix import apply_imgix_optimizations

logger = logging.getLogger("dato_optimizer.cli")


def _non_empty(value: str) -> str:
    if not value.strip():
        raise argparse.ArgumentTypeError("must not be empty")
    return value


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="dato-optimizer", description="DatoCMS image optimization tools")
    sub = p.add_subparsers(dest="command", required=True)

    derive = sub.add_parser("derive", help="Print the imgix-annotated delivery URL for an image")
    derive.add_argument("url")
    derive.add_argument("--width", type=int, required=True)
    derive.add_argument("--height", type=int, required=True)
    derive.add_argument("--size", type=int, required=True, help="File size in bytes")

    replace = sub.add_parser("replace", help="Replace an upload with the image served at a URL")
    replace.add_argument("asset_id", type=_non_empty)
    replace.add_argument("source_url", type=_non_empty)
    replace.add_argument("--filename", default=None, help="Filename for the staged upload")
    replace.add_argument(
        "--strategy",
        default=None,
        choices=["replace_in_place", "create_and_delete"],
        help="Override REPLACEMENT_STRATEGY for this run",
    )
    return p


def _derive(args: argparse.Namespace) -> int:
    if min(args.width, args.height, args.size) < 0:
        print("width, height and size must be >= 0", file=sys.stderr)
        return 1
    print(apply_imgix_optimizations(args.url, args.width, args.height, args.size))
    return 0


def _replace(args: argparse.Namespace, settings: Settings) -> int:
    if args.strategy:
        settings = settings.model_copy(update={"replacement_strategy": args.strategy})
    if settings.strategy_name() == "disabled":
        print("REPLACEMENT_STRATEGY is disabled; pass --strategy to run a replacement", file=sys.stderr)
        return 1

    try:
        client = ContentStoreClient.from_settings(settings)
    except ConfigurationError as e:
        print(str(e), file=sys.stderr)
        return 1

    with client:
        strategy = build_strategy(settings, client)
        try:
            result = strategy.apply(args.asset_id, args.source_url, args.filename)
        except AssetReplacementError as e:
            logger.error("Replacement failed at %s: %s", e.step, e)
            return 2

    print(
        json.dumps(
            {
                "asset_id": result.asset_id,
                "succeeded": result.succeeded,
                "new_upload_id": result.new_upload_id,
                "original_deleted": result.original_deleted,
                "attributes": result.attributes,
            },
            ensure_ascii=False,
            indent=2,
        )
    )
    return 0


def main(argv: list[str] | None = None, settings: Settings | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    args = _build_parser().parse_args(argv)
    if args.command == "derive":
        return _derive(args)
    return _replace(args, settings or default_settings)


if __name__ == "__main__":
    raise SystemExit(main())
