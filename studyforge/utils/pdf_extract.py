import io
from typing import List
from pypdf import PdfReader


def extract_pages_text(data: bytes) -> List[str]:
    """
    Extrait le texte de chaque page d'un PDF reçu en mémoire.
    Une page sans texte donne une chaîne vide.
    """
    reader = PdfReader(io.BytesIO(data))
    return [page.extract_text() or "" for page in reader.pages]


def extract_text(data: bytes) -> str:
    parts = [t for t in extract_pages_text(data) if t.strip()]
    return "\n".join(parts)
