#!/usr/bin/env python3
"""Generate Ed25519 key pairs that clients use to endorse proposals."""

import argparse
from pathlib import Path

from ledger_aggregation.crypto import write_client_keypair


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate client endorsement keys")
    parser.add_argument("--num-clients", type=int, default=10, help="Number of clients (default: 10)")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("config/keys"),
        help="Output directory; point service.client_keys_dir here (default: config/keys)",
    )
    parser.add_argument("--prefix", type=str, default="client", help="Client id prefix (default: client)")
    args = parser.parse_args()

    for i in range(1, args.num_clients + 1):
        identity = f"{args.prefix}-{i:02d}"
        _, pk_path = write_client_keypair(identity, args.output_dir)
        print(f"{identity}: {pk_path}")

    print(f"\nGenerated {args.num_clients} key pairs in {args.output_dir}")


if __name__ == "__main__":
    main()
