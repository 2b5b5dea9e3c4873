"""
Page controller: the upload → verify → generate state machine.

    Upload ──extract ok──▶ Verify ──commit──▶ Generate
      ▲                      │                   │
      └──────── reset ───────┴───────────────────┘

Each controller owns the AppState of one browser session. Actions replace
self.state with an updated copy and return it.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from receipt_invoicer.config import Settings
from receipt_invoicer.errors import EncodeError, ExtractionError, InvalidTransitionError
from receipt_invoicer.graph.nodes.encode import guess_mime_type
from receipt_invoicer.graph.state import AppState, LineItem, ReceiptImage, View
from receipt_invoicer.graph.workflow import run_extraction
from receipt_invoicer.rendering import InvoiceDocument, input_amount, render_all
from receipt_invoicer.verification import VerificationStore

logger = logging.getLogger(__name__)

NO_IMAGE_MESSAGE = "Please upload a receipt image first."


def _displayed(item: LineItem, field: str) -> Any:
    """The value the verify table shows for one cell."""
    if field == "amount":
        return input_amount(item.amount)
    return getattr(item, field)


class ImageHandles:
    """Registry of receipt previews, keyed by display handle.

    A handle stays valid until it is released, when its file is replaced or
    its session is reset.
    """

    def __init__(self) -> None:
        self._images: Dict[str, ReceiptImage] = {}

    def issue(self) -> str:
        return f"img-{uuid.uuid4().hex}"

    def register(self, image: ReceiptImage) -> None:
        self._images[image.handle] = image

    def get(self, handle: str) -> Optional[ReceiptImage]:
        return self._images.get(handle)

    def release(self, handle: Optional[str]) -> None:
        if handle and self._images.pop(handle, None) is not None:
            logger.debug("Released display handle %s", handle)

    def __len__(self) -> int:
        return len(self._images)


class PageController:
    """Drives one session through upload, verification and generation."""

    def __init__(
        self,
        settings: Settings,
        app_graph: Any,
        images: Optional[ImageHandles] = None,
        state: Optional[AppState] = None,
    ):
        self.settings = settings
        self.app_graph = app_graph
        self.images = images if images is not None else ImageHandles()
        self.state = state if state is not None else AppState()
        # Bumped by reset(); an extraction started under an older value is stale.
        self._generation = 0

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require(self, view: View, action: str) -> None:
        if self.state.current_view != view:
            raise InvalidTransitionError(action, self.state.current_view.value)

    def _update(self, **changes: Any) -> AppState:
        self.state = self.state.model_copy(update=changes)
        return self.state

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def select_file(self, filename: Optional[str], content_type: Optional[str], data: bytes) -> AppState:
        """Store the chosen receipt and issue a fresh display handle."""
        self._require(View.UPLOAD, "select a file")
        if not filename:
            return self.state
        if self.state.loading:
            logger.info("Ignoring file selection while an extraction is in flight")
            return self.state

        previous = self.state.receipt_image
        image = ReceiptImage(
            filename=filename,
            content_type=guess_mime_type(filename, content_type),
            data=data,
            handle=self.images.issue(),
        )
        self.images.register(image)
        if previous is not None:
            self.images.release(previous.handle)

        logger.info("Selected receipt %s (%d bytes)", filename, len(data))
        return self._update(receipt_image=image, error_message="")

    def report_error(self, message: str) -> AppState:
        """Show a message on the upload view (e.g. the upload could not be read)."""
        return self._update(error_message=message)

    async def extract(self) -> AppState:
        """Run the extraction for the selected receipt.

        A call made while another extraction is in flight is a no-op. Failures
        keep the upload view and surface one message; nothing is retried.
        """
        if self.state.loading:
            logger.info("Extraction already in flight; ignoring request")
            return self.state
        self._require(View.UPLOAD, "extract data")

        image = self.state.receipt_image
        if image is None:
            return self._update(error_message=NO_IMAGE_MESSAGE)

        generation = self._generation
        self._update(loading=True, error_message="")

        try:
            items = await run_extraction(self.app_graph, image)
        except (EncodeError, ExtractionError) as exc:
            if generation != self._generation:
                logger.info("Discarding failed extraction for a session that was reset")
                return self.state
            logger.warning("Extraction Error: %s", exc)
            return self._update(
                loading=False,
                error_message=f"An error occurred during data extraction: {exc}. Please try again.",
            )
        except Exception:
            logger.exception("Extraction crashed unexpectedly")
            raise
        finally:
            # Also reached on cancellation, which is not an Exception.
            if generation == self._generation and self.state.loading:
                self._update(loading=False)

        if generation != self._generation:
            logger.info("Discarding extraction result for a session that was reset")
            return self.state

        editable = VerificationStore.stage(items, self.settings.placeholder_address)
        return self._update(
            current_view=View.VERIFY,
            extracted_set=items,
            editable_set=editable,
            loading=False,
            error_message="",
        )

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def set_field(self, index: int, field: str, value: Any) -> LineItem:
        self._require(View.VERIFY, "edit a row")
        return VerificationStore(self.state.editable_set).set_field(index, field, value)

    def apply_edits(self, edits: Iterable[Tuple[int, str, Any]]) -> int:
        """Apply a whole submitted table, as (index, field, value) triples.

        Every cell is checked before any is written, so a bad index or field
        leaves the table untouched. A value equal to what the table displays
        for that cell is skipped: an unreadable amount shows as an empty input
        and must stay unreadable rather than become 0. Returns the number of
        cells changed.
        """
        self._require(View.VERIFY, "edit a row")
        store = VerificationStore(self.state.editable_set)
        edits = list(edits)
        for index, field, _ in edits:
            store.check(index, field)

        changed = 0
        for index, field, value in edits:
            if value == _displayed(store.items[index], field):
                continue
            store.set_field(index, field, value)
            changed += 1
        return changed

    def commit(self) -> AppState:
        """Finalize the edited rows and move on to the invoices."""
        self._require(View.VERIFY, "generate invoices")
        finalized = VerificationStore(self.state.editable_set).commit()
        logger.info("Committed %d line items", len(finalized))
        return self._update(current_view=View.GENERATE, extracted_set=finalized)

    # ------------------------------------------------------------------
    # Generate
    # ------------------------------------------------------------------

    def documents(self, today: Optional[date] = None) -> List[InvoiceDocument]:
        self._require(View.GENERATE, "render invoices")
        return render_all(self.state.extracted_set, self.settings, today)

    # ------------------------------------------------------------------
    # Any view
    # ------------------------------------------------------------------

    def reset(self) -> AppState:
        """Start over: release the preview and forget everything."""
        image = self.state.receipt_image
        if image is not None:
            self.images.release(image.handle)
        self._generation += 1
        self.state = AppState()
        return self.state
