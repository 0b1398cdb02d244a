"""CLI entry point."""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from cli.config import DEFAULT_CONFIG_PATH, Config
from cli.utils import format_outcome
from common.exceptions import UploadError
from common.logging_config import setup_logging
from uploader.bucket import create_bucket_if_absent, delete_bucket_if_exists
from uploader.config import UploadConfig
from uploader.orchestrator import UploadOrchestrator
from uploader.s3_client import S3Client


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="s3-multipart",
        description="Upload a large file to S3 with a signed multipart upload.",
    )
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="JSON config file")
    parser.add_argument("--debug", action="store_true", help="Log every signed request")
    parser.add_argument("--bucket", help="Target bucket (env: BUCKET)")
    parser.add_argument("--region", help="Region (env: AWS_REGION)")
    parser.add_argument("--endpoint-url", dest="endpoint_url", help="S3-compatible endpoint (env: S3_ENDPOINT_URL)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    upload = subparsers.add_parser("upload", help="Upload a file")
    upload.add_argument("file", type=Path)
    upload.add_argument("--key", help="Object key (env: KEY; defaults to the file name)")
    upload.add_argument("--chunk-size", dest="chunk_size_bytes", type=int, help="Part size in bytes (env: CHUNK_SIZE)")
    upload.add_argument("--workers", dest="max_workers", type=int, help="Concurrent part uploads")
    upload.add_argument("--create-bucket", action="store_true", help="Create the bucket first if needed")

    subparsers.add_parser("create-bucket", help="Create the bucket if it does not exist")
    subparsers.add_parser("delete-bucket", help="Delete the bucket if it exists")

    presign = subparsers.add_parser("presign", help="Print a presigned GET URL for an object")
    presign.add_argument("key")
    presign.add_argument("--expires", type=int, default=3600, help="Validity in seconds")

    return parser


async def _upload(config: UploadConfig, file_path: Path, create_bucket: bool) -> str:
    async with S3Client(config) as client:
        if create_bucket:
            await create_bucket_if_absent(client, config.bucket)
        outcome = await UploadOrchestrator(config, client=client).upload(file_path)
    return format_outcome(outcome)


async def _bucket_command(config: UploadConfig, command: str) -> str:
    async with S3Client(config) as client:
        if command == "create-bucket":
            created = await create_bucket_if_absent(client, config.bucket)
            return f"{'Created' if created else 'Already exists'}: {config.bucket}"
        deleted = await delete_bucket_if_exists(client, config.bucket)
        return f"{'Deleted' if deleted else 'Did not exist'}: {config.bucket}"


async def _presign_url(config: UploadConfig, key: str, expires: int) -> str:
    async with S3Client(config) as client:
        return client.signer.presign_url("GET", client.object_url(key), expires=expires)


def run(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, run the command and return the process exit code."""
    args = build_parser().parse_args(argv)
    logger = setup_logging('cli', log_level='DEBUG' if args.debug else None)
    if args.debug:
        logger.info("Debug logging enabled")

    overrides = dict(bucket=args.bucket, region=args.region, endpoint_url=args.endpoint_url)
    if args.command == "upload":
        overrides.update(
            key=args.key,
            chunk_size_bytes=args.chunk_size_bytes,
            max_workers=args.max_workers,
        )
    elif args.command == "presign":
        overrides.update(key=args.key)

    config_store = Config(args.config)
    resolved = config_store.resolve(**overrides)
    if args.command == "upload" and not resolved.get("key"):
        resolved["key"] = args.file.name

    try:
        config = UploadConfig(**resolved)
    except ValidationError as e:
        logger.error(f"Invalid configuration: {e}")
        print(f"Error: invalid configuration\n{e}", file=sys.stderr)
        return 2

    try:
        if args.command == "upload":
            message = asyncio.run(_upload(config, args.file, args.create_bucket))
        elif args.command == "presign":
            message = asyncio.run(_presign_url(config, args.key, args.expires))
        else:
            message = asyncio.run(_bucket_command(config, args.command))
    except UploadError as e:
        logger.error(f"{args.command} failed: {e}")
        if e.abort_error is not None:
            logger.error(f"Abort also failed: {e.abort_error}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(message)
    return 0


def main() -> None:
    """Entry point for CLI."""
    sys.exit(run())


if __name__ == "__main__":
    main()
