import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from studyforge.core.errors import ExtractionFailed, UnsupportedFormat
from studyforge.utils import pdf_extract, slides_extract
from studyforge.utils.text_utils import clean_extracted_text

logger = logging.getLogger(__name__)


class DocumentFormat(str, Enum):
    pdf = "application/pdf"
    ppt = "application/vnd.ms-powerpoint"
    pptx = "application/vnd.openxmlformats-officedocument.presentationml.presentation"

    @classmethod
    def from_mime(cls, mime_type: str) -> "DocumentFormat":
        try:
            return cls((mime_type or "").split(";")[0].strip().lower())
        except ValueError:
            raise UnsupportedFormat(f"Unsupported file type: {mime_type}") from None


ACCEPTED_MIME_TYPES = frozenset(f.value for f in DocumentFormat)


@dataclass(frozen=True)
class ExtractedContent:
    text: str
    unitCount: Optional[int] = None


# Un handler prend les octets et rend (texte, nombre d'unités ou None)
Handler = Callable[[bytes], Tuple[str, Optional[int]]]


def _pdf(data: bytes) -> Tuple[str, Optional[int]]:
    # pas de unitCount pour les PDF
    return pdf_extract.extract_text(data), None


HANDLERS: Dict[DocumentFormat, Handler] = {
    DocumentFormat.pdf: _pdf,
    DocumentFormat.ppt: slides_extract.extract_ppt,
    DocumentFormat.pptx: slides_extract.extract_pptx,
}


class ContentExtractor:
    """
    Transforme les octets d'un fichier en texte brut.
    Synchrone et sans effet de bord : la lecture disque est faite par l'appelant.
    """

    def __init__(self, handlers: Dict[DocumentFormat, Handler] | None = None):
        self.handlers = dict(handlers or HANDLERS)

    def extract(self, data: bytes, file_name: str, mime_type: str) -> ExtractedContent:
        fmt = DocumentFormat.from_mime(mime_type)
        handler = self.handlers.get(fmt)
        if handler is None:
            raise UnsupportedFormat(f"Unsupported file type: {mime_type}")

        try:
            raw_text, units = handler(data)
        except Exception as e:
            logger.warning("Extraction %s échouée pour %s: %s", fmt.name, file_name, e)
            raise ExtractionFailed(file_name, "unreadable document") from e

        text = clean_extracted_text(raw_text)
        if not text:
            raise ExtractionFailed(file_name, "no extractable text")

        logger.debug("Extrait %d caractères de %s (%s)", len(text), file_name, fmt.name)
        return ExtractedContent(text=text, unitCount=units)
