"""Per-flow chatbot configuration returned by the backend."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class UploadRule(BaseModel):
    """Allowed MIME types and their size ceiling in megabytes."""

    model_config = ConfigDict(populate_by_name=True)

    file_types: list[str] = Field(default_factory=list, alias="fileTypes")
    max_upload_size: float = Field(default=0, alias="maxUploadSize")


class UploadsConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    is_image_upload_allowed: bool = Field(default=False, alias="isImageUploadAllowed")
    img_upload_size_and_types: list[UploadRule] = Field(
        default_factory=list, alias="imgUploadSizeAndTypes"
    )
    is_speech_to_text_enabled: bool = Field(default=False, alias="isSpeechToTextEnabled")


class LeadsConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    status: bool = False
    title: str | None = None
    name: bool = False
    email: bool = False
    phone: bool = False
    success_message: str | None = Field(default=None, alias="successMessage")


class ChatbotConfig(BaseModel):
    """Response of the chatbot config call.

    ``starter_prompts`` arrives as ``{key: {"prompt": ...}}``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    starter_prompts: dict[str, dict[str, Any]] | None = Field(
        default=None, alias="starterPrompts"
    )
    chat_feedback: dict[str, Any] | None = Field(default=None, alias="chatFeedback")
    uploads: UploadsConfig | None = None
    leads: LeadsConfig | None = None

    @property
    def prompts(self) -> list[str]:
        """Non-empty starter prompts in their configured order."""
        if not self.starter_prompts:
            return []
        prompts = [str(entry.get("prompt") or "") for entry in self.starter_prompts.values()]
        return [prompt for prompt in prompts if prompt]

    @property
    def feedback_enabled(self) -> bool:
        return bool(self.chat_feedback and self.chat_feedback.get("status"))
