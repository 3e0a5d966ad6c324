"""Flatten workspace entities and past conversations into RAG documents."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from ..models.assistant import AssistantConversation, RagDocument, StoredAssistantState
from ..models.entities import Company, Meeting, Note, Person, Project, Task
from .assistant_state import DEFAULT_CONVERSATION_TITLE
from .text_utils import person_display_name, to_plain_text, truncate_text

NOTE_MAX_CHARS = 900
CHAT_MAX_CHARS = 1200
CHAT_EXCERPT_MESSAGES = 8


def _join(parts: Iterable[Optional[str]]) -> str:
    return "\n".join(part for part in parts if part)


def _conversation_excerpt(conversation: AssistantConversation) -> str:
    lines = [
        f"{message.role}: {to_plain_text(message.content)}"
        for message in conversation.messages[-CHAT_EXCERPT_MESSAGES:]
    ]
    return "\n".join(lines).strip()


def _project_document(project: Project) -> RagDocument:
    return RagDocument(
        id=f"project:{project.id}",
        source_type="Project",
        title=project.name or "Untitled project",
        updated_at=project.updated_at,
        content=truncate_text(_join([project.description, " ".join(project.tags), project.para_type])),
    )


def _note_document(note: Note) -> RagDocument:
    return RagDocument(
        id=f"note:{note.id}",
        source_type="Note",
        title=note.title or "Untitled note",
        updated_at=note.updated_at,
        content=truncate_text(_join([to_plain_text(note.body), " ".join(note.tags)]), NOTE_MAX_CHARS),
    )


def _task_document(task: Task) -> RagDocument:
    return RagDocument(
        id=f"task:{task.id}",
        source_type="Task",
        title=task.title or "Untitled task",
        updated_at=task.updated_at,
        content=truncate_text(
            _join(
                [
                    task.description,
                    task.notes,
                    f"status:{task.status}",
                    f"level:{task.level}",
                    " ".join(task.tags),
                ]
            )
        ),
    )


def _meeting_document(meeting: Meeting) -> RagDocument:
    return RagDocument(
        id=f"meeting:{meeting.id}",
        source_type="Meeting",
        title=meeting.title or "Untitled meeting",
        updated_at=meeting.updated_at,
        content=truncate_text(
            _join([meeting.location, f"scheduled:{meeting.scheduled_for}", " ".join(meeting.tags)])
        ),
    )


def _company_document(company: Company) -> RagDocument:
    return RagDocument(
        id=f"company:{company.id}",
        source_type="Company",
        title=company.name or "Untitled company",
        updated_at=company.updated_at,
        content=truncate_text(
            _join(
                [company.email, company.phone, company.website, company.address, " ".join(company.tags)]
            )
        ),
    )


def _person_document(person: Person) -> RagDocument:
    return RagDocument(
        id=f"person:{person.id}",
        source_type="Person",
        title=person_display_name(person) or "Unnamed person",
        updated_at=person.updated_at,
        content=truncate_text(
            _join([person.email, person.phone, person.address, " ".join(person.tags)])
        ),
    )


def _chat_document(conversation: AssistantConversation) -> RagDocument:
    return RagDocument(
        id=f"chat:{conversation.id}",
        source_type="Assistant Chat",
        title=conversation.title or DEFAULT_CONVERSATION_TITLE,
        updated_at=conversation.updated_at,
        content=truncate_text(_conversation_excerpt(conversation), CHAT_MAX_CHARS),
    )


def build_assistant_rag_documents(
    *,
    projects: Sequence[Project] = (),
    notes: Sequence[Note] = (),
    tasks: Sequence[Task] = (),
    meetings: Sequence[Meeting] = (),
    companies: Sequence[Company] = (),
    people: Sequence[Person] = (),
    assistant_state: Optional[StoredAssistantState] = None,
) -> List[RagDocument]:
    """
    Build the retrieval pool for one assistant turn.

    The active conversation is excluded since it is already the chat history.
    Documents with neither a title nor content are dropped.
    """
    documents: List[RagDocument] = [
        *(_project_document(item) for item in projects),
        *(_note_document(item) for item in notes),
        *(_task_document(item) for item in tasks),
        *(_meeting_document(item) for item in meetings),
        *(_company_document(item) for item in companies),
        *(_person_document(item) for item in people),
    ]

    if assistant_state is not None:
        documents.extend(
            _chat_document(conversation)
            for conversation in assistant_state.conversations
            if conversation.id != assistant_state.active_conversation_id
        )

    return [
        document
        for document in documents
        if document.title.strip() or document.content.strip()
    ]


__all__ = ["build_assistant_rag_documents"]
