"""
Registry administration tool.

Generates configuration files and caller keys, and inspects the state of
an existing registry database.
"""
import argparse
import json
import os

from geostake.config import Config
from geostake.crypto import (
    generate_key_pair,
    serialize_private_key,
    serialize_public_key,
    public_key_to_identity,
)
from geostake.registry import Registry


def generate_sample_config(output_path: str):
    """Writes the default configuration as JSON."""
    Config.default().to_file(output_path)
    print(f"Generated sample configuration at: {output_path}")


def generate_keys() -> dict:
    """Creates a caller key pair and prints it with the derived identity."""
    private_key, public_key = generate_key_pair()
    public_pem = serialize_public_key(public_key)
    identity = public_key_to_identity(public_pem)

    print(f"Identity: {identity.hex()}")
    print("Private key (DO NOT USE IN PRODUCTION):")
    print(serialize_private_key(private_key))
    return {'identity': identity, 'public_key': public_pem}


def describe_token(registry: Registry, token_id: int) -> dict:
    record = registry.lifecycle.get_location(token_id)
    owner = registry.lifecycle.get_owner(token_id)
    if record is None:
        return {'id': token_id, 'found': False}
    lat, lon = record.location
    return {
        'id': token_id,
        'found': True,
        'owner': owner.hex() if owner else None,
        'latitude': lat,
        'longitude': lon,
        'degrees': list(record.location_degrees),
        'name': record.name,
        'description': record.description,
        'locked': record.locked,
        'stake_sequence': record.stake_sequence,
    }


def inspect_registry(db_path: str, token_id: int = None) -> dict:
    """Summarises an existing registry database, optionally with one token."""
    if not os.path.isdir(db_path):
        raise FileNotFoundError(f"No registry database at {db_path}")
    registry = Registry(db_path, create_if_missing=False)
    try:
        report = registry.stats()
        if token_id is not None:
            report['token'] = describe_token(registry, token_id)
    finally:
        registry.close()

    print(json.dumps(report, indent=2))
    return report


def main(argv=None):
    parser = argparse.ArgumentParser(description="Location-staked asset registry tool")
    subparsers = parser.add_subparsers(dest="command", required=True)

    parser_sample = subparsers.add_parser("sample-config", help="Write a default config file")
    parser_sample.add_argument("--output", type=str, default="geostake.json", help="Output file path")

    subparsers.add_parser("keygen", help="Generate a caller key pair")

    parser_inspect = subparsers.add_parser("inspect", help="Show registry state")
    parser_inspect.add_argument("--db", type=str, required=True, help="Path to the registry database")
    parser_inspect.add_argument("--token", type=int, default=None, help="Token id to describe")

    args = parser.parse_args(argv)

    if args.command == "sample-config":
        generate_sample_config(args.output)
    elif args.command == "keygen":
        generate_keys()
    elif args.command == "inspect":
        inspect_registry(args.db, args.token)


if __name__ == '__main__':
    main()
