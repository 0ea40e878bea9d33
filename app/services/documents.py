import base64
import binascii
import os
import tempfile
import traceback
from datetime import datetime
from typing import Optional

from langchain_community.document_loaders import PyPDFLoader
from pypdf.errors import PdfReadError

from app.core.logging import get_logger
from app.models.schemas import DocumentExtractResponse

logger = get_logger(__name__)

MAX_FILE_BYTES = 10 * 1024 * 1024

TEXT_EXTENSIONS = (".txt", ".md", ".csv", ".json", ".py", ".js", ".html", ".css")

PDF_ALTERNATIVES = (
    "Copy the text from the PDF and paste it into a .txt file, or export the PDF as text "
    "and upload that instead."
)


class DocumentExtractor:
    """Pulls plain text out of uploaded files so it can be used as chat context"""

    def __init__(self, max_bytes: int = MAX_FILE_BYTES):
        self.max_bytes = max_bytes

    @staticmethod
    def _failure(message: str) -> DocumentExtractResponse:
        return DocumentExtractResponse(success=False, message=message)

    def _kind(self, filename: str, mime_type: Optional[str]) -> str:
        lowered = filename.lower()
        if mime_type == "application/pdf" or lowered.endswith(".pdf"):
            return "pdf"
        if (mime_type or "").startswith("text/") or lowered.endswith(TEXT_EXTENSIONS):
            return "text"
        if (mime_type or "").startswith("image/"):
            return "image"
        return "unknown"

    def _extract_pdf(self, data: bytes) -> str:
        # PyPDFLoader only reads from a path
        handle = tempfile.NamedTemporaryFile(suffix=".pdf", delete=False)
        try:
            handle.write(data)
            handle.close()
            pages = PyPDFLoader(handle.name).load()
            logger.info(f"Loaded {len(pages)} pages from PDF")
            return "\n\n".join(page.page_content for page in pages).strip()
        finally:
            os.unlink(handle.name)

    def extract(self, filename: str, mime_type: Optional[str], content: str) -> DocumentExtractResponse:
        """
        Decode a base64 upload and return its text.
        Failures come back as success=False with a message for the student.
        """
        try:
            data = base64.b64decode(content, validate=True)
        except (binascii.Error, ValueError):
            return self._failure("The file could not be read. Please try uploading it again.")

        if not data:
            return self._failure("The uploaded file is empty.")

        if len(data) > self.max_bytes:
            size_mb = len(data) / 1024 / 1024
            return self._failure(f"File too large. Maximum size is 10MB. Your file is {size_mb:.1f}MB")

        kind = self._kind(filename, mime_type)
        logger.info(f"Extracting text from {filename} ({kind}, {len(data)} bytes)")

        try:
            if kind == "pdf":
                text = self._extract_pdf(data)
            elif kind == "text":
                text = data.decode("utf-8", errors="replace").strip()
            elif kind == "image":
                return self._failure("Text extraction from images isn't supported. Please upload a PDF or text file.")
            else:
                return self._failure(f"Unsupported file type for {filename}. Please upload a PDF or text file.")
        except PdfReadError as e:
            logger.warning(f"Could not parse PDF {filename}: {str(e)}")
            return self._failure(f"This PDF could not be read. {PDF_ALTERNATIVES}")
        except Exception as e:
            logger.error(f"Error extracting text from {filename}: {str(e)}")
            logger.error(traceback.format_exc())
            return self._failure(f"Text extraction failed. {PDF_ALTERNATIVES}")

        if not text:
            return self._failure(f"No text content found in {filename}. {PDF_ALTERNATIVES}")

        return DocumentExtractResponse(
            success=True,
            text=text,
            metadata={
                "fileName": filename,
                "fileSize": len(data),
                "fileType": mime_type or kind,
                "extractedAt": datetime.now().isoformat(),
                "textLength": len(text),
            },
        )
