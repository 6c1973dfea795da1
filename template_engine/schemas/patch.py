from pydantic import BaseModel, Field
from typing import Optional, Union

INNER_TEXT = "innerText"
REORDER = "reorder"


class ReorderTarget(BaseModel):
    afterId: Optional[str] = Field(None, alias="after_id")
    beforeId: Optional[str] = Field(None, alias="before_id")

    class Config:
        populate_by_name = True
        frozen = True


class Patch(BaseModel):
    """One atomic, replayable mutation against a base document.

    ``attribute`` is a literal attribute name, ``innerText`` or ``reorder``;
    a null or empty ``value`` removes the attribute.
    """
    id: str
    attribute: str
    value: Optional[Union[ReorderTarget, bool, int, float, str]] = None

    class Config:
        frozen = True

    @property
    def is_reorder(self) -> bool:
        return self.attribute == REORDER

    @property
    def is_text(self) -> bool:
        return self.attribute == INNER_TEXT
