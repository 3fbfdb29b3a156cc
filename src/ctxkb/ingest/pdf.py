"""PDF extractor — one text page per PDF page.

Uses PyMuPDF for text extraction. Page boundaries are preserved so that
chunks never straddle two pages and every chunk can cite its page number.

Runs entirely locally; no network or model calls.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ctxkb.exceptions import ExtractionError
from ctxkb.ingest.base import BaseExtractor, check_readable_file, normalize_whitespace
from ctxkb.types import Page

if TYPE_CHECKING:
    from pathlib import Path

__all__ = ["DocumentExtractor"]

logger = logging.getLogger(__name__)

# PyMuPDF text extraction flags: preserve ligatures + whitespace, suppress images
_TEXT_FLAGS = 11


class DocumentExtractor(BaseExtractor):
    """Extractor for paginated PDF documents."""

    name = "document"
    MAX_FILE_SIZE: int = 50 * 1024 * 1024  # 50 MB

    def extract(self, path: Path) -> list[Page]:
        """Extract one ``Page`` per non-empty PDF page.

        Args:
            path: Path to the .pdf file.

        Returns:
            Pages with ``source``, ``page`` (1-based), ``total_pages``,
            ``pdf_title`` and ``pdf_author`` metadata.

        Raises:
            ExtractionError: If the PDF cannot be opened or parsed.
        """
        try:
            import pymupdf
        except ImportError as e:
            msg = "pymupdf is required for PDF extraction: pip install pymupdf"
            raise ExtractionError(msg) from e

        check_readable_file(path, self.MAX_FILE_SIZE, "PDF")
        _check_pdf_header(path)

        logger.info("Extracting PDF file: %s", path)

        try:
            doc = pymupdf.open(str(path))
        except (RuntimeError, ValueError, OSError) as e:
            logger.debug("PDF open failure (%s): %s", type(e).__name__, e, exc_info=True)
            msg = f"Failed to open PDF file {path.name}: {e}"
            raise ExtractionError(msg) from e

        try:
            total_pages = len(doc)
            pdf_meta = doc.metadata or {}
            title = pdf_meta.get("title", "") or ""
            author = pdf_meta.get("author", "") or ""

            pages: list[Page] = []
            for page_idx in range(total_pages):
                try:
                    raw = doc.load_page(page_idx).get_text("text", flags=_TEXT_FLAGS)
                except (RuntimeError, ValueError) as e:
                    msg = f"Failed to read page {page_idx + 1} of {path.name}: {e}"
                    raise ExtractionError(msg) from e

                text = normalize_whitespace(raw)
                if not text:
                    logger.debug("Skipping empty page %d of %s", page_idx + 1, path.name)
                    continue

                pages.append(
                    Page(
                        text=text,
                        metadata={
                            "source": str(path),
                            "page": page_idx + 1,
                            "total_pages": total_pages,
                            "pdf_title": title,
                            "pdf_author": author,
                        },
                    )
                )
        finally:
            doc.close()

        logger.info("Extracted %s: %d/%d pages with text", path.name, len(pages), total_pages)
        return pages

    def supported_media_types(self) -> frozenset[str]:
        """Return supported media types."""
        return frozenset({"application/pdf"})


def _check_pdf_header(path: Path) -> None:
    """Validate the PDF magic header.

    Raises:
        ExtractionError: If the file is not a PDF.
    """
    try:
        with path.open("rb") as f:
            header = f.read(5)
    except OSError as e:
        msg = f"Cannot read PDF file {path.name}: {e}"
        raise ExtractionError(msg) from e

    if header != b"%PDF-":
        msg = f"File {path.name} is not a valid PDF (missing %PDF- header)"
        raise ExtractionError(msg)
