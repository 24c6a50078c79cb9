from typing import Optional

from pydantic import BaseModel, Field

from sitebuild.services.normalizer import FallbackPolicy


class BuildRequest(BaseModel):
    fallback_policy: Optional[FallbackPolicy] = Field(
        default=None,
        description="Override the configured locale fallback policy for this build.",
    )
    placeholder_seed: Optional[int] = Field(
        default=None,
        description="Seed for the placeholder image picker (deterministic fallback images).",
    )
