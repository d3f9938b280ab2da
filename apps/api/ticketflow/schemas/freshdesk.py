"""Wire models for the Freshdesk v2 API (only the fields we read)."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class RawTicket(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int | str
    subject: str | None = None
    status: int | None = None
    description_text: str | None = None
    description: str | None = None
    updated_at: str | None = None

    @property
    def external_id(self) -> str:
        return str(self.id)

    @property
    def description_body(self) -> str | None:
        """Plain-text description, falling back to the HTML body."""
        if self.description_text is not None:
            return self.description_text
        return self.description


class RawTurn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int | None = None
    body_text: str | None = None
    private: bool | None = None
    incoming: bool | None = None
    user_id: int | None = None
    created_at: str | None = None
