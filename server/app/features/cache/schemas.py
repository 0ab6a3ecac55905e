"""
Pydantic schemas for cache invalidation and statistics
"""
from typing import Literal, Optional

from pydantic import BaseModel, Field


class InvalidationMessage(BaseModel):
    """Message published on the cache invalidation channel"""
    type: Literal["key", "pattern", "user", "post"]
    value: str
    author_id: Optional[str] = Field(default=None, alias="authorId")

    class Config:
        populate_by_name = True


class RedisCacheStats(BaseModel):
    available: bool
    keys: Optional[int] = None
    memory: Optional[str] = None


class MemoryCacheStats(BaseModel):
    size: int
    max_size: int = Field(serialization_alias="maxSize")


class CacheStats(BaseModel):
    redis: RedisCacheStats
    memory: MemoryCacheStats
