import re
import unicodedata
from pathlib import PurePath


def clean_extracted_text(text: str) -> str:
    """
    Nettoie le texte extrait en gardant les retours à la ligne :
    espaces réduits par ligne, pas plus d'une ligne vide d'affilée.
    """
    if not text:
        return ""
    text = unicodedata.normalize("NFKC", text).replace("\r\n", "\n").replace("\r", "\n")
    lines = [re.sub(r"[ \t\f\v]+", " ", line).strip() for line in text.split("\n")]
    text = "\n".join(lines)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def sanitize_base_name(filename: str) -> tuple[str, str]:
    """
    Découpe un nom de fichier client en (base assainie, extension).
    "Cours 1 (v2).PPTX" -> ("Cours_1_v2", ".PPTX")
    """
    # les navigateurs Windows peuvent envoyer un chemin complet
    name = PurePath(filename.replace("\\", "/")).name if filename else ""
    stem, dot, ext = name.rpartition(".")
    if not dot or not stem:
        stem, ext = name, ""
    else:
        ext = "." + re.sub(r"[^A-Za-z0-9]", "", ext)
        if ext == ".":
            ext = ""

    base = unicodedata.normalize("NFKD", stem).encode("ascii", "ignore").decode("ascii")
    base = re.sub(r"[^A-Za-z0-9._-]+", "_", base).strip("._-")
    return (base or "upload"), ext
