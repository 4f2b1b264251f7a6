import argparse
import asyncio
import json
import os
import sys

# Ensure src is in pythonpath
sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from dotenv import load_dotenv
load_dotenv()

from openlearn_core.config import settings
from openlearn_core.core.errors import DocumentNotFoundError
from openlearn_core.github.api_client import GitHubContentsClient
from openlearn_core.services.catalog_service import CatalogService
from openlearn_core.storage import GLOBAL_CONTENTS_PATH, DocumentStore

DEFAULT_SEED_PATH = os.path.join(os.path.dirname(__file__), "..", "data", "seed_contents.json")


async def main(seed_path: str) -> None:
    config = settings.repository_config()
    print(f"Repository: {config.owner}/{config.repo} (branch {config.branch}, token present: {config.token is not None})")

    print(f"Reading seed content from {seed_path}...")
    with open(seed_path, encoding="utf-8") as f:
        seed = json.load(f)

    if not isinstance(seed, list):
        raise SystemExit("Seed file must contain a JSON list of content items.")

    store = DocumentStore(GitHubContentsClient(config), max_attempts=settings.store_max_attempts)

    # Overwrite whatever is there, keeping its revision so GitHub accepts the update
    try:
        revision = (await store.get(GLOBAL_CONTENTS_PATH)).revision
    except DocumentNotFoundError as exc:
        revision = getattr(exc, "revision", None)

    print(f"Found {len(seed)} items. Uploading to GitHub...")
    await store.save(
        GLOBAL_CONTENTS_PATH,
        seed,
        "Initialize global content with demo data",
        revision,
    )

    print("Regenerating catalog...")
    snapshot = await CatalogService(store, platform_name=settings.platform_name).regenerate()
    print(f"Done! {snapshot.total_available} items in {len(snapshot.categories)} categories.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the global content list in the GitHub store.")
    parser.add_argument("seed_path", nargs="?", default=DEFAULT_SEED_PATH)
    args = parser.parse_args()
    asyncio.run(main(args.seed_path))
