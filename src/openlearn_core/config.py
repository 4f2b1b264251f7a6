from typing import List, Optional

from pydantic import AnyHttpUrl, BaseModel, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class FallbackSource(BaseModel):
    """External search site suggested when a course has no catalog match."""
    platform: str
    url_template: str  # must contain "{query}"
    icon: str
    query_suffix: str = ""


class RepositoryConfig(BaseModel):
    """Everything needed to address one GitHub repository used as a document store."""
    owner: str
    repo: str
    branch: str = "main"
    token: Optional[SecretStr] = None
    api_base_url: str = "https://api.github.com"
    user_agent: str = "OpenLearn-Hub-Backend/1.0.0"
    timeout_seconds: float = 15.0


DEFAULT_FALLBACK_SOURCES = [
    FallbackSource(
        platform="YouTube",
        url_template="https://www.youtube.com/results?search_query={query}",
        icon="youtube",
        query_suffix=" tutorial",
    ),
    FallbackSource(
        platform="Coursera",
        url_template="https://www.coursera.org/search?query={query}",
        icon="graduation-cap",
        query_suffix=" tutorial",
    ),
    FallbackSource(
        platform="freeCodeCamp",
        url_template="https://www.freecodecamp.org/news/search/?query={query}",
        icon="code",
    ),
]


class Settings(BaseSettings):
    github_token: Optional[SecretStr] = None
    github_owner: str = ""
    github_repo: str = ""
    github_branch: str = "main"
    github_api_base_url: AnyHttpUrl = "https://api.github.com"
    github_user_agent: str = "OpenLearn-Hub-Backend/1.0.0"
    github_timeout_seconds: float = 15.0

    # Optimistic concurrency: total attempts for read-modify-write primitives
    store_max_attempts: int = 3
    batch_lookup_concurrency: int = 50

    platform_name: str = "OpenLearn Hub"
    content_url_template: str = "/notes/{id}"
    fallback_sources: List[FallbackSource] = DEFAULT_FALLBACK_SOURCES

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

    def repository_config(self) -> RepositoryConfig:
        return RepositoryConfig(
            owner=self.github_owner,
            repo=self.github_repo,
            branch=self.github_branch,
            token=self.github_token,
            api_base_url=str(self.github_api_base_url).rstrip("/"),
            user_agent=self.github_user_agent,
            timeout_seconds=self.github_timeout_seconds,
        )

settings = Settings()
