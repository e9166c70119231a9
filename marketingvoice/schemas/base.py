# marketingvoice/schemas/base.py
from pydantic import BaseModel


def to_camel(string: str) -> str:
    head, *rest = string.split("_")
    return head + "".join(word.title() for word in rest)


class CamelModel(BaseModel):
    """Snake case in Python, camel case on the wire."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
