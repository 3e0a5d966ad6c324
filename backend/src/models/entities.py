"""Workspace entity models (projects, notes, tasks, meetings, companies, people)."""

from __future__ import annotations

from typing import Dict, List, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

CollectionName = Literal["projects", "notes", "tasks", "meetings", "companies", "people"]

ENTITY_COLLECTIONS: tuple[CollectionName, ...] = (
    "projects",
    "notes",
    "tasks",
    "meetings",
    "companies",
    "people",
)

RELATION_FIELD_SUFFIX = "_ids"

ParaType = Literal["project", "area", "resource", "archive"]
TaskStatus = Literal[
    "inbox",
    "next_action",
    "in_progress",
    "waiting",
    "someday",
    "longterm",
    "complete",
    "archive",
]
TaskLevel = Literal["story", "task", "subtask"]


class BaseEntity(BaseModel):
    """Fields shared by every stored entity."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    id: str = Field(..., min_length=1)
    created_at: str = Field(..., description="ISO-8601 creation timestamp")
    updated_at: str = Field(..., description="ISO-8601 last update timestamp")


class Project(BaseEntity):
    name: str = ""
    para_type: ParaType = "project"
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    person_ids: List[str] = Field(default_factory=list)
    company_ids: List[str] = Field(default_factory=list)
    note_ids: List[str] = Field(default_factory=list)
    task_ids: List[str] = Field(default_factory=list)
    meeting_ids: List[str] = Field(default_factory=list)


class Note(BaseEntity):
    title: str = ""
    body: str = ""
    tags: List[str] = Field(default_factory=list)
    related_note_ids: List[str] = Field(default_factory=list)
    person_ids: List[str] = Field(default_factory=list)
    company_ids: List[str] = Field(default_factory=list)
    project_ids: List[str] = Field(default_factory=list)
    task_ids: List[str] = Field(default_factory=list)
    meeting_ids: List[str] = Field(default_factory=list)


class Task(BaseEntity):
    title: str = ""
    description: Optional[str] = None
    notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    status: TaskStatus = "inbox"
    level: TaskLevel = "task"
    parent_task_id: Optional[str] = None
    due_date: Optional[str] = None
    person_ids: List[str] = Field(default_factory=list)
    company_ids: List[str] = Field(default_factory=list)
    project_ids: List[str] = Field(default_factory=list)
    note_ids: List[str] = Field(default_factory=list)
    meeting_ids: List[str] = Field(default_factory=list)


class Meeting(BaseEntity):
    title: str = ""
    tags: List[str] = Field(default_factory=list)
    scheduled_for: str = ""
    location: Optional[str] = None
    person_ids: List[str] = Field(default_factory=list)
    company_ids: List[str] = Field(default_factory=list)
    project_ids: List[str] = Field(default_factory=list)
    note_ids: List[str] = Field(default_factory=list)
    task_ids: List[str] = Field(default_factory=list)


class Company(BaseEntity):
    name: str = ""
    tags: List[str] = Field(default_factory=list)
    website: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    person_ids: List[str] = Field(default_factory=list)
    project_ids: List[str] = Field(default_factory=list)
    note_ids: List[str] = Field(default_factory=list)
    task_ids: List[str] = Field(default_factory=list)
    meeting_ids: List[str] = Field(default_factory=list)


class Person(BaseEntity):
    first_name: str = ""
    last_name: str = ""
    tags: List[str] = Field(default_factory=list)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    company_ids: List[str] = Field(default_factory=list)
    project_ids: List[str] = Field(default_factory=list)
    note_ids: List[str] = Field(default_factory=list)
    task_ids: List[str] = Field(default_factory=list)
    meeting_ids: List[str] = Field(default_factory=list)


COLLECTION_MODELS: Dict[CollectionName, Type[BaseEntity]] = {
    "projects": Project,
    "notes": Note,
    "tasks": Task,
    "meetings": Meeting,
    "companies": Company,
    "people": Person,
}

ENTITY_ID_PREFIXES: Dict[CollectionName, str] = {
    "projects": "project",
    "notes": "note",
    "tasks": "task",
    "meetings": "meeting",
    "companies": "company",
    "people": "person",
}


def relation_fields_for(collection: CollectionName) -> List[str]:
    """Return the relation field names declared on a collection's model."""
    model = COLLECTION_MODELS[collection]
    return [name for name in model.model_fields if name.endswith(RELATION_FIELD_SUFFIX)]


__all__ = [
    "CollectionName",
    "ENTITY_COLLECTIONS",
    "BaseEntity",
    "Project",
    "Note",
    "Task",
    "Meeting",
    "Company",
    "Person",
    "COLLECTION_MODELS",
    "ENTITY_ID_PREFIXES",
    "relation_fields_for",
]
