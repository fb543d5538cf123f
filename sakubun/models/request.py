from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Envelope(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    @field_validator("*", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        # Missing/odd inputs are reported by the workflow, not rejected with a 422
        if v is None:
            return None
        return v if isinstance(v, str) else str(v)


class FeedbackRequest(_Envelope):
    question: Optional[str] = ""
    text: Optional[str] = ""
    model_preference: Optional[str] = Field(default=None, alias="modelPreference")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "question": "Do you agree that high school students should have part-time jobs? Write 60-80 words.",
                "text": "I agree with this idea. First, students can learn how to use money. "
                        "Second, they can talk with many people at work.\n\n"
                        "For these reasons, I think part-time jobs are good for students.",
                "modelPreference": "flash",
            }
        },
    )


class FollowUpRequest(_Envelope):
    question: Optional[str] = ""
    original_question: Optional[str] = Field(default=None, alias="originalQuestion")
    original_text: Optional[str] = Field(default=None, alias="originalText")
    feedback: Optional[str] = None
    model_preference: Optional[str] = Field(default=None, alias="modelPreference")
