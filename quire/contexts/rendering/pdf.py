"""
PDF export options and post-processing.

The engine emits the full document; page selection and the document
identifier are applied afterwards with PyPDF2.
"""

import hashlib
import io
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Union

from PyPDF2 import PdfReader, PdfWriter
from PyPDF2.generic import ArrayObject, ByteStringObject, NameObject, NumberObject

# Option name -> engine identifier
PDF_STANDARDS = {
    "pdf_1_7": "1.7",
    "pdf_a_2b": "a-2b",
    "pdf_a_3b": "a-3b",
}


@dataclass(frozen=True)
class PdfOptions:
    """
    Options for PDF export.

    Attributes:
        pages: 1-indexed page list/range string, e.g. "1-3,5,7-9" (None = all pages)
        pdf_standards: Compliance standards drawn from pdf_1_7, pdf_a_2b, pdf_a_3b
        document_id: Stable identifier written to the PDF trailer /ID
    """

    pages: Optional[str] = None
    pdf_standards: FrozenSet[str] = field(default_factory=frozenset)
    document_id: Optional[str] = None

    def __post_init__(self):
        standards = self.pdf_standards
        if isinstance(standards, str):
            standards = [standards]
        object.__setattr__(self, "pdf_standards", frozenset(str(s) for s in standards or ()))

    @classmethod
    def coerce(cls, options: Union["PdfOptions", Mapping[str, Any], None] = None, **kwargs) -> "PdfOptions":
        """Build options from None, a mapping, keyword arguments, or existing options."""
        if isinstance(options, PdfOptions) and not kwargs:
            return options
        merged: Dict[str, Any] = {}
        if isinstance(options, PdfOptions):
            merged.update(options.to_dict())
        elif options:
            merged.update(options)
        merged.update(kwargs)

        unknown = set(merged) - {"pages", "pdf_standards", "document_id"}
        if unknown:
            raise TypeError(f"Unknown PDF options: {', '.join(sorted(unknown))}")

        return cls(
            pages=merged.get("pages"),
            pdf_standards=merged.get("pdf_standards") or frozenset(),
            document_id=merged.get("document_id"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Only the options that are set."""
        options: Dict[str, Any] = {}
        if self.pages is not None:
            options["pages"] = self.pages
        if self.pdf_standards:
            options["pdf_standards"] = sorted(self.pdf_standards)
        if self.document_id is not None:
            options["document_id"] = self.document_id
        return options

    def engine_standards(self) -> List[str]:
        """
        Map standards to engine identifiers.

        Raises:
            ValueError: For an unknown standard
        """
        unknown = self.pdf_standards - set(PDF_STANDARDS)
        if unknown:
            raise ValueError(
                f"Invalid PDF standards: {', '.join(sorted(unknown))} "
                f"(expected one of {', '.join(PDF_STANDARDS)})"
            )
        return [PDF_STANDARDS[name] for name in sorted(self.pdf_standards)]


def parse_page_ranges(pages: str, total: int) -> List[int]:
    """
    Parse a 1-indexed page range string into sorted 0-indexed page numbers.

    Pages are exported in document order, each at most once, however the
    ranges are written.

    Args:
        pages: Comma-separated pages or inclusive ranges, e.g. "1-3,5,7-9"
        total: Number of pages in the document

    Returns:
        Sorted 0-indexed page numbers

    Raises:
        ValueError: Unparseable numbers, reversed ranges, or pages outside 1..total
    """
    selected = set()

    for part in pages.split(","):
        part = part.strip()
        if "-" in part:
            start_text, end_text = part.split("-", 1)
            try:
                start, end = int(start_text.strip()), int(end_text.strip())
            except ValueError:
                raise ValueError(f"Invalid page number in range: {part}") from None
            if start < 1 or end < 1 or start > total or end > total or start > end:
                raise ValueError(f"Page range out of bounds: {part}")
            selected.update(range(start - 1, end))
        else:
            try:
                page = int(part)
            except ValueError:
                raise ValueError(f"Invalid page number: {part}") from None
            if page < 1 or page > total:
                raise ValueError(f"Page number out of bounds: {page}")
            selected.add(page - 1)

    return sorted(selected)


def document_id_bytes(document_id: str) -> bytes:
    """Derive the 16-byte trailer identifier for a document id string."""
    return hashlib.sha256(document_id.encode("utf-8")).digest()[:16]


def postprocess_pdf(
    pdf_bytes: bytes,
    page_indices: Optional[Iterable[int]] = None,
    document_id: Optional[str] = None,
) -> bytes:
    """
    Select pages and stamp the document identifier.

    The whole document is copied first: every catalog entry (output intents,
    XMP metadata, language, structure tree) and the info dictionary survive,
    so a PDF/A export stays PDF/A after page selection. Unselected pages are
    then dropped from the page tree.

    Args:
        pdf_bytes: Full PDF produced by the engine
        page_indices: 0-indexed pages to keep (None = all)
        document_id: Identifier for the trailer /ID (None = leave as produced)

    Returns:
        Rewritten PDF bytes (the input unchanged when there is nothing to do)
    """
    if page_indices is None and document_id is None:
        return pdf_bytes

    reader = PdfReader(io.BytesIO(pdf_bytes))
    writer = PdfWriter()

    for page in reader.pages:
        copy = writer.add_page(page)
        # add_page drops the page's index into the structure parent tree
        if "/StructParents" in page:
            copy[NameObject("/StructParents")] = page["/StructParents"]

    _copy_catalog(reader, writer)
    if reader.metadata:
        writer.add_metadata(dict(reader.metadata))
    if "/ID" in reader.trailer:
        writer._ID = reader.trailer["/ID"].clone(writer)

    if page_indices is not None:
        _keep_pages(writer, page_indices)

    if document_id is not None:
        identifier = ByteStringObject(document_id_bytes(document_id))
        # PyPDF2 writes _ID to the trailer when present
        writer._ID = ArrayObject([identifier, identifier])

    output = io.BytesIO()
    writer.write(output)
    return output.getvalue()


def _copy_catalog(reader: PdfReader, writer: PdfWriter) -> None:
    # The writer keeps its own catalog and page tree; everything else comes from the reader
    source = reader.trailer["/Root"]
    catalog = writer._root_object
    for key, value in source.items():
        if key in ("/Type", "/Pages"):
            continue
        catalog[NameObject(key)] = value.clone(writer)


def _keep_pages(writer: PdfWriter, page_indices: Iterable[int]) -> None:
    keep = set(page_indices)
    tree = writer.pages[0]["/Parent"]
    kids = [kid for index, kid in enumerate(tree["/Kids"]) if index in keep]
    tree[NameObject("/Kids")] = ArrayObject(kids)
    tree[NameObject("/Count")] = NumberObject(len(kids))
