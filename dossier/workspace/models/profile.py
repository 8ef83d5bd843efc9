"""Remote client profile records (cross-device contact details)."""

from __future__ import annotations

from pydantic import BaseModel


class ClientProfile(BaseModel):
    slug: str
    display_name: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    description: str = ""
    created_at: str | None = None
    updated_at: str | None = None


class ClientProfileInput(BaseModel):
    """Fields sent to the profile service on upsert."""

    slug: str
    display_name: str | None = None
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    description: str = ""


class NewClientDetails(BaseModel):
    """What the user fills in to create a client folder."""

    folder_slug: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    description: str = ""

    @property
    def friendly_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.folder_slug

    def profile_input(self, slug: str) -> ClientProfileInput:
        return ClientProfileInput(
            slug=slug,
            display_name=self.friendly_name,
            **self.model_dump(exclude={"folder_slug"}),
        )
