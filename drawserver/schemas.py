"""
Request models for the drawserver HTTP API.

Create requests carry defaults; update requests are partial (None means
"leave unchanged").
"""

from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from drawcore import EdgeDirection


class CreateNodeRequest(BaseModel):
    """Request to create a new node."""
    label: str = ""
    cx: float = 100
    cy: float = 100
    rx: float = Field(default=30, gt=0)
    ry: float = Field(default=30, gt=0)
    font_size: float = Field(default=14, gt=0)
    font_family: str = "Arial"


class UpdateNodeRequest(BaseModel):
    """Request to update an existing node (partial update)."""
    label: Optional[str] = None
    font_size: Optional[float] = None
    rx: Optional[float] = None
    ry: Optional[float] = None
    cx: Optional[float] = None
    cy: Optional[float] = None
    rotation: Optional[float] = None


class CreateEdgeRequest(BaseModel):
    """Request to create a new edge."""
    source: str = ""
    target: str = ""
    direction: str = EdgeDirection.NONE.value
    label: str = ""

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Accept 'from'/'to' as aliases for 'source'/'target'."""
        if isinstance(data, dict):
            if 'from' in data and 'source' not in data:
                data['source'] = data.pop('from')
            if 'to' in data and 'target' not in data:
                data['target'] = data.pop('to')
        return data


class UpdateEdgeRequest(BaseModel):
    """Request to update an existing edge."""
    direction: Optional[str] = None
    label: Optional[str] = None
    curve_amount: Optional[float] = None
    line_type: Optional[str] = None


class ShapeIdsRequest(BaseModel):
    shape_ids: list[str] = Field(default_factory=list)


class MoveShapesRequest(ShapeIdsRequest):
    dx: float = 0
    dy: float = 0


class RotateShapeRequest(BaseModel):
    shape_id: str
    rotation: float


class StyleRequest(ShapeIdsRequest):
    style: dict[str, Any] = Field(default_factory=dict)


class AlignRequest(ShapeIdsRequest):
    alignment: str = "left"


class DistributeRequest(ShapeIdsRequest):
    axis: str = "horizontal"


class ZOrderRequest(ShapeIdsRequest):
    operation: str = "bring_to_front"


class LayoutRequest(BaseModel):
    strategy: str = "grid"
    options: dict[str, Any] = Field(default_factory=dict)


class ApplyClassRequest(ShapeIdsRequest):
    class_name: Optional[str] = None
    style: dict[str, Any] = Field(default_factory=dict)


class PointRequest(BaseModel):
    x: float
    y: float


class InsertVertexRequest(PointRequest):
    index: Optional[int] = None  # None appends


class AddPathPointRequest(BaseModel):
    segment_index: int
    t: float = 0.5
    x: Optional[float] = None
    y: Optional[float] = None
