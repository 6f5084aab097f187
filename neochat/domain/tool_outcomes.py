"""Typed results returned by built-in tool handlers.

Handlers never raise. A failure is a ``TextOutcome`` whose text describes
what went wrong, so the model can read it like any other tool output.
"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class TextOutcome:
    """Plain text handed back to the model as the tool turn content."""
    text: str


@dataclass(frozen=True)
class ImageOutcome:
    """A generated image.

    The image itself goes to the client as a side-channel event; the model
    only learns that generation succeeded and what the revised prompt was.
    """
    data_url: str
    revised_prompt: str

    def model_summary(self) -> str:
        return (
            f"Image generated successfully. Revised prompt: {self.revised_prompt}. "
            "Let the user know the image is shown above."
        )


ToolOutcome = Union[TextOutcome, ImageOutcome]
