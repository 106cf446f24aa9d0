#!/usr/bin/env python3
"""
Upload a generated site directory to Qiniu object storage.

Usage:
  python upload_site.py <site_dir> <logical_name>
  python upload_site.py --teardown <storage_prefix>

Environment variables required:
  QINIU_ACCESS_KEY, QINIU_SECRET_KEY, QINIU_BUCKET
"""
import asyncio
import sys

from sitedeploy.config import get_settings
from sitedeploy.core.exceptions import DeployError
from sitedeploy.services.deploy import DeployService


async def upload(site_dir: str, logical_name: str) -> int:
    service = DeployService(get_settings())
    try:
        result = await service.deploy(site_dir, logical_name, log=print)
    except DeployError as e:
        print(f"ERROR: {e}")
        return 1

    print(f"Done: {result.uploaded_count} files uploaded to {result.dir_name}/")
    if result.failed_count:
        print(f"WARNING: {result.failed_count} files failed")
    print(f"Preview: {result.preview_url}")
    return 0


async def teardown(prefix: str) -> int:
    service = DeployService(get_settings())
    try:
        result = await service.teardown(prefix)
    except DeployError as e:
        print(f"ERROR: {e}")
        return 1
    print(f"Deleted {result.deleted_count}/{result.total_count} objects under {prefix}/")
    return 0


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print(__doc__)
        sys.exit(1)

    if sys.argv[1] == "--teardown":
        sys.exit(asyncio.run(teardown(sys.argv[2])))
    sys.exit(asyncio.run(upload(sys.argv[1], sys.argv[2])))
