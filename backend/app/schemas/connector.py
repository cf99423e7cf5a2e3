from typing import Literal

from pydantic import BaseModel

FieldType = Literal["string", "number", "date", "boolean", "object", "array"]


class SourceField(BaseModel):
    """A field the upstream CMS exposes, offered as a mapping source."""

    name: str
    type: FieldType
    label: str
    required: bool = False
    description: str | None = None
