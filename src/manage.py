"""Ordering database management CLI.

Creates and drops the database schema for the ordering domain, and seeds
products for local runs.

Usage:
    PROTEAN_ENV=production python src/manage.py setup-db   # Create all tables
    PROTEAN_ENV=production python src/manage.py drop-db    # Drop all tables
    python src/manage.py seed-product --name Tee --sku TEE-BLK-MD --price 25 \
        --colour black --size md --stock 40
"""

import argparse
import sys


def setup_database():
    from ordering.domain import ordering
    from ordering.utils.db import setup_db

    print("Initializing ordering domain...")
    ordering.init()
    print("Creating ordering database schema...")
    touched = setup_db(ordering)
    if not touched:
        print("  No RDBMS provider configured; nothing to create.")
    print("Done.")


def drop_database():
    from ordering.domain import ordering
    from ordering.utils.db import drop_db

    print("Initializing ordering domain...")
    ordering.init()
    print("Dropping ordering database schema...")
    touched = drop_db(ordering)
    if not touched:
        print("  No RDBMS provider configured; nothing to drop.")
    print("Done.")


def seed_product(args):
    from ordering.domain import ordering
    from ordering.stock.management import RegisterProduct

    ordering.init()
    with ordering.domain_context():
        product_id = ordering.process(
            RegisterProduct(
                name=args.name,
                sku=args.sku,
                price=args.price,
                colour=args.colour,
                size=args.size,
                total_stock=args.stock,
            ),
            asynchronous=False,
        )
    print(f"Registered product {product_id}")


def main():
    parser = argparse.ArgumentParser(description="Ordering database management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    seed_parser = subparsers.add_parser("seed-product", help="Register a product with stock")
    seed_parser.add_argument("--name", required=True)
    seed_parser.add_argument("--sku", required=True)
    seed_parser.add_argument("--price", type=float, required=True)
    seed_parser.add_argument("--colour", required=True)
    seed_parser.add_argument("--size", choices=["sm", "md", "lg", "xl"], required=True)
    seed_parser.add_argument("--stock", type=int, default=0)

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "seed-product":
        seed_product(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
