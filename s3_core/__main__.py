from __future__ import annotations
"""Command line entry point: list buckets and objects, presign downloads."""
import argparse
import logging
import os
import sys
from typing import Callable, TextIO

from .listing import MalformedResponse
from .profiles import DEFAULT_REGION, ProfileStorage
from .services import S3Client, S3RequestError, TransportError
from .signer import Credentials, InvalidURL
from .ui_utils import file_kind, format_last_modified, format_size, is_previewable, load_package_info

ClientFactory = Callable[[str, Credentials], S3Client]

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    info = load_package_info()
    parser = argparse.ArgumentParser(prog="s3_core", description=info.summary)
    parser.add_argument("--version", action="version", version=f"%(prog)s {info.version}".strip())
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--profile", help="Saved connection profile to use")
    parser.add_argument("--endpoint", default=os.environ.get("S3_ENDPOINT"), help="Store endpoint URL")
    parser.add_argument("--access-key", default=os.environ.get("S3_ACCESS_KEY"), help="Access key id")
    parser.add_argument("--secret-key", default=os.environ.get("S3_SECRET_KEY"), help="Secret access key")
    parser.add_argument(
        "--region",
        default=os.environ.get("S3_REGION", DEFAULT_REGION),
        help=f"Signing region (default: {DEFAULT_REGION})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("buckets", help="List buckets")

    ls_parser = subparsers.add_parser("ls", help="List folders and files under a prefix")
    ls_parser.add_argument("bucket")
    ls_parser.add_argument("prefix", nargs="?", default="")
    ls_parser.add_argument("--max-items", type=int, default=None, help="Stop after this many entries")

    head_parser = subparsers.add_parser("head", help="Show object metadata")
    head_parser.add_argument("bucket")
    head_parser.add_argument("key")

    presign_parser = subparsers.add_parser("presign", help="Print a presigned GET URL")
    presign_parser.add_argument("bucket")
    presign_parser.add_argument("key")
    presign_parser.add_argument("--expires", type=int, default=3600, help="Validity in seconds (default: 3600)")
    return parser


def _resolve_connection(
    args: argparse.Namespace,
    parser: argparse.ArgumentParser,
    profile_storage: ProfileStorage | None,
) -> tuple[str, Credentials]:
    if args.profile:
        storage = profile_storage or ProfileStorage()
        for profile in storage.load():
            if profile.name == args.profile:
                return profile.endpoint_url, profile.credentials()
        parser.error(f"profile '{args.profile}' does not exist")
    if not (args.endpoint and args.access_key and args.secret_key):
        parser.error("--endpoint, --access-key and --secret-key are required without --profile")
    credentials = Credentials(access_key=args.access_key, secret_key=args.secret_key, region=args.region)
    return args.endpoint, credentials


def _run(args: argparse.Namespace, client: S3Client, out: TextIO) -> None:
    if args.command == "buckets":
        for bucket in client.list_buckets():
            print(f"{format_last_modified(bucket.creation_date):<24} {bucket.name}", file=out)
    elif args.command == "ls":
        for page in client.iter_listing(args.bucket, prefix=args.prefix, max_items=args.max_items):
            for folder in page.folders:
                print(f"{'DIR':>10}  {'':<24} {folder.name}/", file=out)
            for entry in page.files:
                print(
                    f"{format_size(entry.size):>10}  {format_last_modified(entry.last_modified):<24} {entry.name}",
                    file=out,
                )
    elif args.command == "head":
        details = client.head_object(args.bucket, args.key)
        print(f"key: {details.key}", file=out)
        print(f"size: {details.size} ({format_size(details.size)})", file=out)
        print(f"content-type: {details.content_type}", file=out)
        print(f"kind: {file_kind(details.key)}", file=out)
        print(f"previewable: {'yes' if is_previewable(details.key) else 'no'}", file=out)
        print(f"last-modified: {format_last_modified(details.last_modified)}", file=out)
        print(f"etag: {details.etag or '-'}", file=out)
        for name, value in sorted(details.metadata.items()):
            print(f"meta {name}: {value}", file=out)
    elif args.command == "presign":
        print(client.presigned_url(args.bucket, args.key, args.expires), file=out)


def main(
    argv: list[str] | None = None,
    *,
    client_factory: ClientFactory | None = None,
    profile_storage: ProfileStorage | None = None,
    out: TextIO | None = None,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )
    out = out or sys.stdout

    endpoint_url, credentials = _resolve_connection(args, parser, profile_storage)
    factory = client_factory or S3Client
    client = factory(endpoint_url, credentials)
    try:
        _run(args, client, out)
    except (S3RequestError, TransportError, MalformedResponse, InvalidURL) as exc:
        LOGGER.debug("Command '%s' failed", args.command, exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    finally:
        client.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
