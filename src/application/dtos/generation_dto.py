from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class BaseGenerationRequest(BaseModel):
    """JSON body for a base-generation node (prompt only, no source image)."""

    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(..., min_length=1, description="Text prompt for the new image",
                        examples=["A lighthouse at dusk, oil painting"])
    node_id: str = Field(..., alias="nodeId", min_length=1,
                         description="Output node id; its step images are keyed by it",
                         examples=["node-1"])
