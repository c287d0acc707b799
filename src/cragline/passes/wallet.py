"""Local pass wallet persisted as a JSON file.

The wallet is the write boundary for passes: duplicate barcodes are
rejected here, and every mutation keeps at most one primary pass.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import TypeAdapter
from pydantic import ValidationError as SchemaError

from cragline.errors import NotFoundError, StoreError, ValidationError
from cragline.passes.schemas import Pass

logger = logging.getLogger(__name__)

_passes_adapter = TypeAdapter(list[Pass])


class PassWallet:
    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path).expanduser() if path is not None else None
        self._passes: list[Pass] = self._read()

    @classmethod
    def from_settings(cls, settings) -> PassWallet:
        return cls(settings.pass_wallet_path)

    @property
    def passes(self) -> list[Pass]:
        return list(self._passes)

    @property
    def primary(self) -> Pass | None:
        return next((p for p in self._passes if p.is_primary), None)

    def find_duplicate(self, code: str, symbology: str) -> Pass | None:
        return next((p for p in self._passes if p.barcode.key == (code, symbology)), None)

    def add(self, new_pass: Pass) -> Pass:
        """Store a pass. A primary pass demotes the current one; the first pass is always primary."""
        if not new_pass.is_valid:
            raise ValidationError("A pass needs a title and a barcode")
        if self.find_duplicate(*new_pass.barcode.key) is not None:
            raise ValidationError("This pass is already in your wallet")
        if not self._passes:
            new_pass = new_pass.model_copy(update={"is_primary": True})
        passes = self._passes
        if new_pass.is_primary:
            passes = [p.model_copy(update={"is_primary": False}) for p in passes]
        self._write([*passes, new_pass])
        logger.info("Added pass %s", new_pass.id)
        return new_pass

    def set_primary(self, pass_id: str) -> None:
        self._get(pass_id)
        self._write([p.model_copy(update={"is_primary": p.id == pass_id}) for p in self._passes])

    def delete(self, pass_id: str) -> None:
        """Remove a pass; if it was primary, the first remaining pass takes over."""
        removed = self._get(pass_id)
        remaining = [p for p in self._passes if p.id != pass_id]
        if removed.is_primary and remaining:
            remaining[0] = remaining[0].model_copy(update={"is_primary": True})
        self._write(remaining)
        logger.info("Deleted pass %s", pass_id)

    def update_title(self, pass_id: str, title: str) -> None:
        title = title.strip()
        if not title:
            raise ValidationError("A pass needs a title")
        self._get(pass_id)
        self._write([
            p.model_copy(update={"info": p.info.model_copy(update={"title": title})}) if p.id == pass_id else p
            for p in self._passes
        ])

    def _get(self, pass_id: str) -> Pass:
        for p in self._passes:
            if p.id == pass_id:
                return p
        raise NotFoundError("Pass not found")

    def _read(self) -> list[Pass]:
        if self.path is None or not self.path.exists():
            return []
        try:
            passes = _passes_adapter.validate_json(self.path.read_bytes())
        except (OSError, SchemaError) as exc:
            raise StoreError(f"Could not read pass wallet: {exc}") from exc
        return _keep_first_primary(passes)

    def _write(self, passes: list[Pass]) -> None:
        if self.path is not None:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.write_bytes(_passes_adapter.dump_json(passes, by_alias=True, indent=2))
            except OSError as exc:
                raise StoreError(f"Could not save pass wallet: {exc}") from exc
        self._passes = passes


def _keep_first_primary(passes: list[Pass]) -> list[Pass]:
    """Demote every primary pass after the first one found."""
    kept: list[Pass] = []
    seen_primary = False
    for p in passes:
        if p.is_primary and seen_primary:
            p = p.model_copy(update={"is_primary": False})
        seen_primary = seen_primary or p.is_primary
        kept.append(p)
    return kept
