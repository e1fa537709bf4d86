from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Request, status

from ..errors import NoteNotFoundError
from ..ids import generate_id
from ..schemas import NoteContentUpdate, NoteCreate, NoteDoneUpdate, NoteIn, NoteOut
from ..store import NoteStore

router = APIRouter(
    prefix="/api/v1/notes",
    tags=["notes"],
)


def get_store(request: Request) -> NoteStore:
    """
    Dependency returning the note store owned by the application.
    """
    return request.app.state.note_store


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=List[NoteOut],
    summary="List Notes",
    description="List every note: incomplete notes first, most recently updated first within each group.",
)
async def list_notes(store: NoteStore = Depends(get_store)) -> List[NoteOut]:
    return [NoteOut(**n) for n in await store.list_notes()]


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=NoteOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Note",
    description="Create a new note. The server assigns the id and timestamps.",
    responses={
        201: {"description": "Note created successfully"},
        409: {"description": "Generated id collided with an existing note"},
        422: {"description": "Empty content"},
    },
)
async def create_note(payload: NoteCreate, store: NoteStore = Depends(get_store)) -> NoteOut:
    created = await store.create_note({"id": generate_id(), "content": payload.content, "done": payload.done})
    return NoteOut(**created)


# PUBLIC_INTERFACE
@router.put(
    "/",
    response_model=List[NoteOut],
    summary="Replace All Notes",
    description="Overwrite the whole collection and return it in read order.",
    responses={
        409: {"description": "Duplicate ids in the payload"},
    },
)
async def replace_notes(payload: List[NoteIn], store: NoteStore = Depends(get_store)) -> List[NoteOut]:
    await store.replace_all([n.model_dump() for n in payload])
    return [NoteOut(**n) for n in await store.list_notes()]


# PUBLIC_INTERFACE
@router.get(
    "/{note_id}",
    response_model=NoteOut,
    summary="Get Note",
    responses={404: {"description": "Note not found"}},
)
async def get_note(note_id: str, store: NoteStore = Depends(get_store)) -> NoteOut:
    return NoteOut(**await store.get_note(note_id))


# PUBLIC_INTERFACE
@router.patch(
    "/{note_id}",
    response_model=NoteOut,
    summary="Edit Note",
    description="Replace the text of a note.",
    responses={
        404: {"description": "Note not found"},
        422: {"description": "Empty content"},
    },
)
async def update_note(note_id: str, payload: NoteContentUpdate, store: NoteStore = Depends(get_store)) -> NoteOut:
    return NoteOut(**await store.update_note(note_id, payload.content))


# PUBLIC_INTERFACE
@router.put(
    "/{note_id}/done",
    response_model=NoteOut,
    summary="Set Note Done",
    description="Mark a note complete or incomplete.",
    responses={404: {"description": "Note not found"}},
)
async def set_note_done(note_id: str, payload: NoteDoneUpdate, store: NoteStore = Depends(get_store)) -> NoteOut:
    return NoteOut(**await store.set_note_done(note_id, payload.done))


# PUBLIC_INTERFACE
@router.delete(
    "/{note_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Note",
    responses={
        204: {"description": "Note deleted"},
        404: {"description": "Note not found"},
    },
)
async def delete_note(note_id: str, store: NoteStore = Depends(get_store)) -> None:
    """
    Delete a note. Returns 204 on success, 404 if nothing was removed.
    """
    if not await store.delete_note(note_id):
        raise NoteNotFoundError(f"delete failed: no note with id '{note_id}'")
    return None
