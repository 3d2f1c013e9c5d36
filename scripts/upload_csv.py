#!/usr/bin/env python3
# ========================
# scripts/upload_csv.py
# ========================

"""
Command-line client that uploads a CSV file to a running ingestion server
and prints the most recent records afterwards.

Usage: python scripts/upload_csv.py FILE [--url URL] [--batch-size N] [--max-concurrent-writes N]
"""

import argparse
import sys

import requests


def main() -> int:
    parser = argparse.ArgumentParser(description="Upload a CSV file to the ingestion API")
    parser.add_argument("file", help="CSV file to upload")
    parser.add_argument("--url", default="http://localhost:8000", help="Server base URL")
    parser.add_argument("--batch-size", type=int)
    parser.add_argument("--max-concurrent-writes", type=int)
    parser.add_argument("--timeout", type=float, default=600.0, help="Request timeout in seconds")
    args = parser.parse_args()

    params = {}
    if args.batch_size:
        params['batch_size'] = args.batch_size
    if args.max_concurrent_writes:
        params['max_concurrent_writes'] = args.max_concurrent_writes

    try:
        with open(args.file, 'rb') as f:
            response = requests.post(f"{args.url}/upload",
                                     files={'file': (args.file, f, 'text/csv')},
                                     params=params,
                                     timeout=args.timeout)
    except requests.exceptions.RequestException as e:
        print(f"Upload failed: {e}")
        return 1

    print(f"HTTP {response.status_code}: {response.json()}")
    if response.status_code != 200:
        return 1

    recent = requests.get(f"{args.url}/records", timeout=30)
    recent.raise_for_status()
    print("Most recent records:")
    for record in recent.json():
        print(f"  {record}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
