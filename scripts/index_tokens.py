#!/usr/bin/env python3
"""
Bulk Token Indexing Script

Loads token metadata records from a JSON file (an array, or an object with a
"tokens" array) and indexes them into the configured Pinecone index.

Usage:
    python scripts/index_tokens.py tokens.json [--dry-run] [--clear]
"""

import sys
import asyncio
import argparse
import logging
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


async def run(args) -> int:
    from tokenrag.common.config import load_config, validate_config
    from tokenrag.common.data_loader import load_entities_from_file
    from tokenrag.common.errors import TokenRAGError
    from tokenrag.indexer.chunker import chunk_entities, fragments_fit_context
    from tokenrag.service import TokenRAGService

    config = load_config()

    try:
        entities = load_entities_from_file(args.file)
    except (FileNotFoundError, TokenRAGError) as e:
        print(f"[Index] ERROR: {e}")
        return 1

    fragments = chunk_entities(entities, config.chunking.chunk_size, config.chunking.chunk_overlap)
    print(f"[Index] Loaded {len(entities)} tokens -> {len(fragments)} fragments")

    if args.dry_run:
        fits = fragments_fit_context(fragments, config.chunking.max_context_length)
        print("[Index] DRY RUN - no changes will be made")
        print(f"[Index] Chunk size: {config.chunking.chunk_size}, overlap: {config.chunking.chunk_overlap}")
        print(f"[Index] All fragments within context limit: {fits}")
        for entity in entities:
            print(f"[Index]   {entity.symbol:<8} {entity.name}")
        return 0

    try:
        validate_config(config)
    except TokenRAGError as e:
        print(f"[Index] ERROR: {e}")
        return 1

    service = TokenRAGService.from_config(config)
    try:
        await service.start()
        if args.clear:
            print(f"[Index] Clearing index '{config.pinecone.index_name}'...")
            await service.clear_index()

        result = await service.index_entities(entities)
    except TokenRAGError as e:
        print(f"[Index] ERROR: {e}")
        return 1
    finally:
        await service.stop()

    print(
        f"[Index] Complete: {result.indexed_count}/{len(entities)} tokens, "
        f"{result.upserted_fragments}/{result.total_fragments} fragments"
    )
    if not result.success:
        print(f"[Index] ERROR: {result.error}")
        return 1
    return 0


def main():
    parser = argparse.ArgumentParser(description="Index token metadata from a JSON file")
    parser.add_argument("file", help="JSON file with token records")
    parser.add_argument("--dry-run", action="store_true", help="Chunk and report without calling any provider")
    parser.add_argument("--clear", action="store_true", help="Delete all vectors before indexing")
    args = parser.parse_args()

    from dotenv import load_dotenv
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
