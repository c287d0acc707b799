"""Pass wallet screen: scan, name, choose the primary pass, delete."""

from __future__ import annotations

import structlog
from pydantic import Field

from cragline.errors import CraglineError, ValidationError
from cragline.passes.schemas import BarcodeData, Pass, PassInfo
from cragline.passes.wallet import PassWallet
from cragline.viewmodel import ViewModel, ViewState

logger = structlog.get_logger()


class PassState(ViewState):
    passes: list[Pass] = Field(default_factory=list)
    primary_pass: Pass | None = None
    # Scan flow
    scanned_pass: Pass | None = None
    title_placeholder: str = ""
    show_title_prompt: bool = False
    duplicate_pass_name: str = ""
    duplicate_pass_alert: bool = False
    # Deletion flow
    pending_deletion: Pass | None = None


class PassViewModel(ViewModel[PassState]):
    def __init__(self, wallet: PassWallet) -> None:
        super().__init__(PassState())
        self.wallet = wallet
        self.load_passes()

    def load_passes(self) -> None:
        self._set(passes=self.wallet.passes, primary_pass=self.wallet.primary)

    def set_title(self, title: str) -> None:
        self._set(title_placeholder=title)

    def handle_scanned_barcode(self, code: str, symbology: str) -> None:
        """Stage a freshly scanned pass and prompt for its title."""
        duplicate = self.wallet.find_duplicate(code, symbology)
        self._set(
            scanned_pass=Pass(barcode=BarcodeData(code=code, symbology=symbology)),
            show_title_prompt=True,
            duplicate_pass_name=duplicate.title if duplicate else "",
        )
        logger.debug("barcode_scanned", symbology=symbology, duplicate=duplicate is not None)

    def save_pass_with_title(self, primary: bool = False) -> bool:
        scanned = self.state.scanned_pass
        if scanned is None:
            return False
        if self.wallet.find_duplicate(*scanned.barcode.key) is not None:
            self._set(duplicate_pass_alert=True)
            return False
        final = scanned.model_copy(
            update={
                "info": PassInfo(title=self.state.title_placeholder.strip(), date=scanned.info.date),
                "is_primary": primary,
            }
        )
        try:
            self.wallet.add(final)
        except ValidationError as exc:
            self._fail(exc)
            return False
        except CraglineError as exc:
            self._fail(exc, prefix="Failed to save pass")
            return False
        self.load_passes()
        self._set(scanned_pass=None, show_title_prompt=False, title_placeholder="", duplicate_pass_name="")
        return True

    def dismiss_duplicate_alert(self) -> None:
        self._set(duplicate_pass_alert=False)

    def set_primary_pass(self, pass_id: str) -> None:
        try:
            self.wallet.set_primary(pass_id)
        except CraglineError as exc:
            self._fail(exc)
            return
        self.load_passes()

    def confirm_delete(self, target: Pass) -> None:
        self._set(pending_deletion=target)

    def cancel_delete(self) -> None:
        self._set(pending_deletion=None)

    def handle_delete(self) -> None:
        """Delete the pass awaiting confirmation, if any."""
        target = self.state.pending_deletion
        if target is None:
            return
        try:
            self.wallet.delete(target.id)
        except CraglineError as exc:
            self._fail(exc, prefix="Failed to delete pass", pending_deletion=None)
            return
        self.load_passes()
        self._set(pending_deletion=None)

    def update_pass_title(self, pass_id: str, title: str) -> None:
        try:
            self.wallet.update_title(pass_id, title)
        except CraglineError as exc:
            self._fail(exc)
            return
        self.load_passes()
