"""
Request models for the graph API.

Field names follow the agent tool catalog (`nodename`, `parentId`, ...);
snake_case names are accepted as well.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from graph_core import BatchOperation


class NewGraphRequest(BaseModel):
    """Request to start a new empty graph."""
    model_config = ConfigDict(populate_by_name=True)

    root_id: str = Field(default="root", min_length=1, alias="rootId")
    label: str = ""


class CreateNodeRequest(BaseModel):
    """Request to add a node under a parent."""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias="nodename")
    parent_id: str = Field(default="root", alias="parentId")


class MoveNodeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_parent_id: str = Field(alias="newParentId")


class CreateEdgeRequest(BaseModel):
    """Request to connect two nodes."""
    model_config = ConfigDict(populate_by_name=True)

    edge_id: str = Field(min_length=1, alias="edgeId")
    source_id: str = Field(alias="sourceId")
    target_id: str = Field(alias="targetId")
    container_id: Optional[str] = Field(default=None, alias="containerId")
    label: str = ""

    @model_validator(mode="before")
    @classmethod
    def convert_short_fields(cls, data: Any) -> Any:
        """Accept plain 'source'/'target' as well."""
        if isinstance(data, dict):
            data = dict(data)
            if "source" in data and "sourceId" not in data and "source_id" not in data:
                data["sourceId"] = data.pop("source")
            if "target" in data and "targetId" not in data and "target_id" not in data:
                data["targetId"] = data.pop("target")
        return data


class GroupNodesRequest(BaseModel):
    """Request to wrap sibling nodes in a new group."""
    model_config = ConfigDict(populate_by_name=True)

    node_ids: list[str] = Field(alias="nodeIds")
    parent_id: str = Field(default="root", alias="parentId")
    group_id: str = Field(min_length=1, alias="groupId")


class BatchRequest(BaseModel):
    """Request to apply several operations as one step."""
    operations: list[BatchOperation]
