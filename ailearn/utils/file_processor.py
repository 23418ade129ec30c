"""Text extraction for uploaded documents."""
from pathlib import Path
from typing import Callable, Dict

import pypdf
from docx import Document as DocxDocument


class FileProcessor:
    """Extract plain text from the document formats we can read.

    ``.doc``, ``.ppt`` and ``.pptx`` uploads are accepted by storage but have
    no extractor; callers check :meth:`is_supported` first.
    """

    @staticmethod
    def extract_text(file_path: str) -> str:
        """
        Extract text from a file.

        Args:
            file_path: Path to the file

        Returns:
            The extracted text, pages separated by blank lines

        Raises:
            ValueError: If the format is not supported or the file can't be read
        """
        extension = Path(file_path).suffix.lower()
        extractor = FileProcessor._extractors().get(extension)
        if extractor is None:
            raise ValueError(f"Unsupported file format: {extension}")
        return extractor(file_path).strip()

    @staticmethod
    def is_supported(filename: str) -> bool:
        """Check if a file format has an extractor."""
        return Path(filename).suffix.lower() in FileProcessor._extractors()

    @staticmethod
    def _extractors() -> Dict[str, Callable[[str], str]]:
        return {
            ".pdf": FileProcessor._extract_from_pdf,
            ".docx": FileProcessor._extract_from_docx,
            ".txt": FileProcessor._extract_from_text,
        }

    @staticmethod
    def _extract_from_pdf(file_path: str) -> str:
        try:
            reader = pypdf.PdfReader(file_path)
            pages = [page.extract_text() or "" for page in reader.pages]
        except Exception as e:
            raise ValueError(f"Error extracting text from PDF: {e}")
        return "\n\n".join(p.strip() for p in pages if p.strip())

    @staticmethod
    def _extract_from_docx(file_path: str) -> str:
        try:
            doc = DocxDocument(file_path)
        except Exception as e:
            raise ValueError(f"Error extracting text from DOCX: {e}")
        return "\n\n".join(para.text for para in doc.paragraphs if para.text.strip())

    @staticmethod
    def _extract_from_text(file_path: str) -> str:
        try:
            return Path(file_path).read_text(encoding="utf-8")
        except UnicodeDecodeError:
            return Path(file_path).read_text(encoding="latin-1")
        except OSError as e:
            raise ValueError(f"Error reading text file: {e}")
