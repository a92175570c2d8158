from pydantic import BaseModel, Field, ConfigDict, field_validator, field_serializer
from typing import Optional, List, Dict, Set

from .core.entities import split_machine

# ============= SNAPSHOT SCHEMAS =============

class MaintenanceSnapshot(BaseModel):
    """On-disk form of the registry: {"Machines": {...}, "Sites": {...}}"""
    model_config = ConfigDict(populate_by_name=True)

    machines: Dict[str, Set[str]] = Field(default_factory=dict, alias="Machines")
    sites: Dict[str, Set[str]] = Field(default_factory=dict, alias="Sites")

    @field_validator('machines', 'sites')
    @classmethod
    def drop_empty_entries(cls, v):
        return {name: issues for name, issues in v.items() if issues}

    @field_validator('machines')
    @classmethod
    def validate_machine_names(cls, v):
        for name in v:
            split_machine(name)
        return v

    @field_serializer('machines', 'sites')
    def serialize_issue_sets(self, v):
        return {name: sorted(issues) for name, issues in sorted(v.items())}


class MaintenanceStatus(BaseModel):
    machines: Dict[str, List[str]]
    sites: Dict[str, List[str]]

# ============= GITHUB WEBHOOK SCHEMAS =============

class Issue(BaseModel):
    number: int
    state: Optional[str] = None
    body: Optional[str] = None


class Comment(BaseModel):
    body: Optional[str] = None


class IssuesEvent(BaseModel):
    action: str
    issue: Issue


class IssueCommentEvent(BaseModel):
    action: Optional[str] = None
    issue: Issue
    comment: Comment


class Hook(BaseModel):
    events: List[str] = []


class PingEvent(BaseModel):
    zen: Optional[str] = None
    hook: Hook
