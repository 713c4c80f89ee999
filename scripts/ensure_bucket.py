"""Create the configured bucket if it does not already exist.

Run once at deploy/startup time; the adapter itself never creates buckets.
"""

from __future__ import annotations

import asyncio
import logging

from bucketfs.config import get_settings
from bucketfs.storage.gcs import GcsAdapter

LOGGER = logging.getLogger(__name__)


async def ensure_bucket(adapter: GcsAdapter) -> bool:
    created = await adapter.ensure_bucket()
    if created:
        LOGGER.info("Bucket %s created", adapter.bucket_name)
    else:
        LOGGER.info("Bucket %s already present", adapter.bucket_name)
    return created


def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    adapter = GcsAdapter.from_settings(settings)
    asyncio.run(ensure_bucket(adapter))


if __name__ == "__main__":
    main()
