#!/usr/bin/env python3
"""Script to pre-warm the local cache of every configured remote model."""

import argparse
import logging
import sys
import time

from .config import Config, import_entity
from .exceptions import RemoteModelsError
from .resolver import CacheResolver

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Pre-cache remote models by setting up and loading their data all at once."
    )
    parser.add_argument(
        'models', nargs='*',
        help='Models as "package.module:ClassName" (default: REMOTE_MODELS_MODELS)'
    )
    parser.add_argument(
        '--force', action='store_true',
        help='Rebuild every cache even when it is still fresh'
    )
    return parser.parse_args(argv)


def main(argv=None, config=Config, resolver=None):
    logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
    args = parse_args(argv)

    references = args.models or config.MODELS
    if not references:
        print("Error: no models given and REMOTE_MODELS_MODELS is not set")
        return 1

    resolver = resolver or CacheResolver(config=config)

    print(f"\nCache refresh settings:")
    print(f"  Cache directory: {resolver.cache_directory}")
    print(f"  TTL: {config.cache_ttl() or 'disabled (mtime comparison)'}")
    print(f"  Models to cache: {len(references)}")
    print(f"  Force rebuild: {'yes' if args.force else 'no'}")

    started = time.time()
    failed = []

    for processed, reference in enumerate(references, start=1):
        try:
            entity_type = import_entity(reference)
            store = resolver.refresh(entity_type) if args.force else resolver.resolve(entity_type)
            print(f"  [{processed}/{len(references)}] {reference}: {store.count()} rows ({store.database})")
        except (ImportError, TypeError, RemoteModelsError) as e:
            logger.error(f"Failed to cache {reference}: {e}")
            failed.append(reference)

    print(f"\nCache refresh complete!")
    print(f"  Successful: {len(references) - len(failed)}")
    print(f"  Failed: {len(failed)}")
    print(f"  Duration: {time.time() - started:.1f} seconds")

    if failed:
        print(f"  Failed models: {', '.join(failed)}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
