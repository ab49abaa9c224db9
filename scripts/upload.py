#!/usr/bin/env python3
"""
Upload a file to Beamdrop and print a download link.

Usage:
    python scripts/upload.py <bucket> <file_path> [--key KEY] [--create-bucket]
                             [--expires SECONDS] [--pretty] [--max-downloads N]

Examples:
    python scripts/upload.py avatars photo.jpg
    python scripts/upload.py avatars /path/to/photo.jpg --key user-1/photo.jpg
    python scripts/upload.py invoices inv-42.pdf --create-bucket --pretty --max-downloads 3
"""
import argparse
import logging
import os
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from beamdrop import StorageClient, StorageError


logger = logging.getLogger(__name__)


def format_size(bytes_size: float) -> str:
    """Format bytes to human-readable size."""
    for unit in ['B', 'KB', 'MB', 'GB']:
        if bytes_size < 1024.0:
            return f"{bytes_size:.2f} {unit}"
        bytes_size /= 1024.0
    return f"{bytes_size:.2f} TB"


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Upload a file to Beamdrop")
    parser.add_argument("bucket", help="Target bucket")
    parser.add_argument("file_path", help="Local file to upload")
    parser.add_argument("--key", help="Object key (defaults to the file name)")
    parser.add_argument("--create-bucket", action="store_true", help="Create the bucket if missing")
    parser.add_argument("--expires", type=int, default=3600, help="Link lifetime in seconds")
    parser.add_argument("--pretty", action="store_true", help="Register a short /dl/ link on the server")
    parser.add_argument("--max-downloads", type=int, help="Download limit for --pretty links")
    return parser.parse_args(argv)


def main(argv=None, client: StorageClient = None):
    """Main upload function."""
    load_dotenv()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "warning").upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    args = parse_args(argv)

    if not os.path.isfile(args.file_path):
        print(f"❌ Error: File not found: {args.file_path}")
        sys.exit(1)

    object_key = args.key or os.path.basename(args.file_path)
    body = Path(args.file_path).read_bytes()

    print(f"📁 File: {os.path.basename(args.file_path)}")
    print(f"📏 Size: {format_size(len(body))}")
    print(f"🔑 Object Key: {args.bucket}/{object_key}")
    print()

    try:
        if client is None:
            client = StorageClient.from_env()

        if args.create_bucket:
            info = client.create_bucket_if_not_exists(args.bucket)
            print(f"✓ Bucket {info.bucket} {'exists' if info.exists else 'created'}")

        print("📤 Uploading...")
        result = client.put_object(args.bucket, object_key, body)

        print()
        print("✅ Upload successful!")
        print(f"   Key: {result.key}")
        print(f"   Size: {format_size(result.size)}")
        print(f"   ETag: {result.etag}")

        if args.pretty:
            link = client.create_pretty_presigned_url(
                args.bucket,
                object_key,
                expires_in=args.expires,
                max_downloads=args.max_downloads,
            )
            print(f"   Download URL: {link.url}")
        else:
            print(f"   Download URL: {client.presigned_url(args.bucket, object_key, args.expires)}")

    except StorageError as e:
        print()
        print(f"❌ Storage Error ({e.kind.value}, status {e.status_code}): {e}")
        if e.retryable:
            print("   The server asked to retry later.")
        sys.exit(1)
    except KeyboardInterrupt:
        print()
        print("\n⚠️  Upload cancelled by user")
        sys.exit(1)


if __name__ == "__main__":
    main()
