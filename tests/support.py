"""Shared schemas and handlers for the test suite."""

from pydantic import BaseModel


class Text(BaseModel):
    text: str


class Value(BaseModel):
    value: int


class Flag(BaseModel):
    ok: bool


class Empty(BaseModel):
    pass


class ScriptedHandler:
    """Handler returning scripted outputs in order and counting calls.

    Exceptions in the script are raised instead of returned.
    """

    def __init__(self, *outputs):
        self.outputs = list(outputs)
        self.calls = 0

    def __call__(self, value):
        item = self.outputs[min(self.calls, len(self.outputs) - 1)]
        self.calls += 1
        if isinstance(item, Exception):
            raise item
        return item
