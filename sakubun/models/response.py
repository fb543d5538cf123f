from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _Response(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class FeedbackResponse(_Response):
    status: Literal["success"] = "success"
    feedback: str
    word_count: int = Field(alias="wordCount")
    student_text_numbered: str = Field(alias="studentTextNumbered")


class FollowUpResponse(_Response):
    status: Literal["success"] = "success"
    answer: str


class ErrorResponse(_Response):
    status: Literal["error"] = "error"
    message: str
