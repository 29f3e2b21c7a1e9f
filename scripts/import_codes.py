#!/usr/bin/env python
"""Script to bulk-load delivery codes for a product from a text file.

Usage:
    python scripts/import_codes.py <product_id> <codes_file>

The file holds one code per line. Codes are trimmed; blank lines and
codes the product already has are skipped.

Requirements:
    - SUPABASE_URL and SUPABASE_SECRET_KEY environment variables must be set
    - The product must already exist
"""

import asyncio
import logging
import sys
from pathlib import Path

# Add the project root to the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from storefront.core.supabase import get_supabase_client
from storefront.services.code_service import CodeService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def main() -> None:
    """Import codes from a file for one product."""
    if len(sys.argv) != 3:
        print(__doc__)
        sys.exit(2)

    product_id, codes_path = sys.argv[1], Path(sys.argv[2])
    if not codes_path.exists():
        logger.error(f"Codes file not found: {codes_path}")
        sys.exit(1)

    raw_codes = codes_path.read_text(encoding="utf-8").splitlines()
    logger.info(f"Importing {len(raw_codes)} lines for product {product_id}...")

    try:
        service = CodeService(get_supabase_client())
        result = await service.add_codes(product_id, raw_codes)
    except Exception as e:
        logger.error(f"Import failed: {e}")
        sys.exit(1)

    logger.info("Import complete!")
    logger.info(f"Added: {result['added']}")
    logger.info(f"Skipped: {result['skipped']}")


if __name__ == "__main__":
    asyncio.run(main())
