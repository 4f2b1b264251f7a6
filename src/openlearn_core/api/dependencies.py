from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from ..config import settings
from ..github.api_client import GitHubContentsClient
from ..storage import DocumentStore
from ..services.catalog_service import CatalogService
from ..services.content_service import ContentService
from ..services.curriculum_service import CurriculumService
from ..services.profile_service import ProfileService


@lru_cache
def get_github_client() -> GitHubContentsClient:
    return GitHubContentsClient(settings.repository_config())


@lru_cache
def get_document_store() -> DocumentStore:
    return DocumentStore(
        get_github_client(),
        max_attempts=settings.store_max_attempts,
        batch_concurrency=settings.batch_lookup_concurrency,
    )


StoreDep = Annotated[DocumentStore, Depends(get_document_store)]


def get_catalog_service(store: StoreDep) -> CatalogService:
    return CatalogService(store, platform_name=settings.platform_name)


def get_content_service(store: StoreDep) -> ContentService:
    return ContentService(store)


def get_profile_service(store: StoreDep) -> ProfileService:
    return ProfileService(store, batch_concurrency=settings.batch_lookup_concurrency)


def get_curriculum_service(
    store: StoreDep,
    catalog: Annotated[CatalogService, Depends(get_catalog_service)],
) -> CurriculumService:
    return CurriculumService(
        store,
        catalog,
        fallback_sources=settings.fallback_sources,
        content_url_template=settings.content_url_template,
        platform_name=settings.platform_name,
    )
