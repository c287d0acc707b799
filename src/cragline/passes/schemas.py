"""Membership passes kept in the local wallet."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import Field

from cragline.schemas import StoreModel, utcnow


class PassInfo(StoreModel):
    title: str = ""
    date: datetime = Field(default_factory=utcnow)

    @property
    def is_valid(self) -> bool:
        return bool(self.title.strip())


class BarcodeData(StoreModel):
    code: str
    symbology: str

    @property
    def is_valid(self) -> bool:
        return bool(self.code) and bool(self.symbology)

    @property
    def key(self) -> tuple[str, str]:
        """Duplicate-detection key."""
        return (self.code, self.symbology)


class Pass(StoreModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    info: PassInfo = Field(default_factory=PassInfo)
    barcode: BarcodeData
    is_primary: bool = False

    @property
    def title(self) -> str:
        return self.info.title

    @property
    def is_valid(self) -> bool:
        return self.info.is_valid and self.barcode.is_valid

    @property
    def deletion_message(self) -> str:
        if self.is_primary:
            return "This is your primary pass. Are you sure you want to delete it?"
        return "Are you sure you want to delete this pass?"
