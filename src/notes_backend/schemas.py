from __future__ import annotations

from typing import Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool

# Stored timestamps may be any JSON number; integers stay integers.
Timestamp = Union[int, float]


# PUBLIC_INTERFACE
class NoteCreate(BaseModel):
    """
    Schema for creating a new note. The id and timestamps are assigned by the server.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "content": "buy milk",
                "done": False,
            }
        }
    )

    content: str = Field(..., description="Note text; surrounding whitespace is trimmed and must leave something")
    done: StrictBool = Field(default=False, description="Completion status flag")


# PUBLIC_INTERFACE
class NoteContentUpdate(BaseModel):
    """
    Schema for editing the text of an existing note.
    """

    model_config = ConfigDict(json_schema_extra={"example": {"content": "buy oat milk"}})

    content: str = Field(..., description="Replacement note text")


# PUBLIC_INTERFACE
class NoteDoneUpdate(BaseModel):
    """
    Schema for toggling the completion flag of a note.
    """

    model_config = ConfigDict(json_schema_extra={"example": {"done": True}})

    done: StrictBool = Field(..., description="New completion status")


# PUBLIC_INTERFACE
class NoteIn(BaseModel):
    """
    A complete note as supplied to the bulk replace endpoint.
    """

    id: str = Field(..., description="Unique identifier of the note")
    content: str = Field(..., description="Note text")
    created_at: Timestamp = Field(..., description="Creation timestamp, milliseconds since epoch")
    updated_at: Timestamp = Field(..., description="Last update timestamp, milliseconds since epoch")
    done: StrictBool = Field(default=False, description="Completion status flag")


# PUBLIC_INTERFACE
class NoteOut(BaseModel):
    """
    Schema returned by the API for a note.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "3fa85f6457174562b3fc2c963f66afa6",
                "content": "buy milk",
                "created_at": 1760000000000,
                "updated_at": 1760000000000,
                "done": False,
            }
        }
    )

    id: str = Field(..., description="Unique identifier of the note")
    content: str = Field(..., description="Note text")
    created_at: Timestamp = Field(..., description="Creation timestamp, milliseconds since epoch")
    updated_at: Timestamp = Field(..., description="Last update timestamp, milliseconds since epoch")
    done: bool = Field(..., description="Completion status flag")
