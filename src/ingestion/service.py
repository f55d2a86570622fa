import io
import hashlib
from typing import List
from langchain_community.document_loaders.parsers.pdf import PyPDFParser
from langchain_core.document_loaders import Blob
from docx import Document as DocxDocument

TEXT_MIME_PREFIXES = ("text/",)
TEXT_MIME_TYPES = ("application/json", "message/rfc822")


class IngestionService:
    """Turns uploaded evidence documents into plain text for the analysis prompt."""

    def __init__(self):
        self.pdf_parser = PyPDFParser()

    def calculate_hash(self, file_content: bytes) -> str:
        """Calculates SHA-256 hash of the file content."""
        return hashlib.sha256(file_content).hexdigest()

    def can_extract(self, filename: str | None, mime_type: str | None) -> bool:
        lower = (filename or "").lower()
        mime = (mime_type or "").lower()
        return (
            lower.endswith((".pdf", ".docx", ".txt", ".eml", ".md", ".csv"))
            or mime == "application/pdf"
            or mime.startswith(TEXT_MIME_PREFIXES)
            or mime in TEXT_MIME_TYPES
        )

    def extract_text(self, file_content: bytes, filename: str | None, mime_type: str | None = None) -> str:
        """
        Extracts full text from the uploaded file.
        Supports PDF, DOCX, and plain text.
        """
        lower = (filename or "").lower()
        if lower.endswith('.pdf') or mime_type == "application/pdf":
            pages = self.extract_pages(file_content)
            return "\n".join(p["content"] for p in pages)
        elif lower.endswith('.docx'):
            return self._extract_docx_text(file_content)
        else:
            try:
                return file_content.decode('utf-8')
            except UnicodeDecodeError:
                raise ValueError("Unsupported file format or encoding")

    def extract_pages(self, file_content: bytes) -> List[dict]:
        """Extract text page-by-page from a PDF. Returns list of {page_number, content}."""
        blob = Blob.from_data(file_content, mime_type="application/pdf")
        documents = list(self.pdf_parser.lazy_parse(blob))
        pages = []
        for doc in documents:
            text = doc.page_content or ""
            if text.strip():
                page_num = doc.metadata.get("page", 0) + 1  # PyPDFParser is 0-indexed
                pages.append({"page_number": page_num, "content": text})
        return pages

    def _extract_docx_text(self, file_content: bytes) -> str:
        """Extract text from a DOCX file using python-docx."""
        doc = DocxDocument(io.BytesIO(file_content))
        return "\n".join(p.text for p in doc.paragraphs if p.text.strip())
