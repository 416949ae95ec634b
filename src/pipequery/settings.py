"""Shared settings loaded from environment / .env file."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration for the query builder and its renderers.

    Values are read from environment variables and from a ``.env`` file
    in the working directory.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Query builder
    default_query_name: str = "new_query"

    # Text rendering
    tab_width: int = 2
    docs_block_tag: str = "malloy-query"
    docs_description: str = "Add a description here."
    code_fence_language: str = "malloy"
