import io
import struct
from typing import Iterator, List, Tuple

import olefile
from pptx import Presentation
from pptx.shapes.group import GroupShape

# Types d'enregistrements du format binaire PowerPoint 97-2003 ([MS-PPT])
RT_SLIDE = 0x03EE
RT_MAIN_MASTER = 0x03F8
RT_TEXT_CHARS_ATOM = 0x0FA0
RT_TEXT_BYTES_ATOM = 0x0FA8

PPT_DOCUMENT_STREAM = "PowerPoint Document"


def _shape_texts(shape) -> Iterator[str]:
    """
    Texte d'une forme : descend dans les groupes, lit les tableaux cellule par cellule.
    """
    if isinstance(shape, GroupShape):
        for child in shape.shapes:
            yield from _shape_texts(child)
    elif shape.has_table:
        for row in shape.table.rows:
            for cell in row.cells:
                if cell.text.strip():
                    yield cell.text
    elif shape.has_text_frame and shape.text_frame.text.strip():
        yield shape.text_frame.text


def extract_pptx(data: bytes) -> Tuple[str, int]:
    """
    Texte d'un .pptx (formes + notes orateur), une section par slide.
    Retourne (texte, nombre de slides).
    """
    prs = Presentation(io.BytesIO(data))
    blocks: List[str] = []
    count = 0
    for count, slide in enumerate(prs.slides, start=1):
        lines = []
        for shape in slide.shapes:
            lines.extend(_shape_texts(shape))
        if slide.has_notes_slide:
            notes = slide.notes_slide.notes_text_frame
            if notes is not None and notes.text.strip():
                lines.append(f"Notes: {notes.text}")
        if lines:
            blocks.append(f"## Slide {count}\n" + "\n".join(lines))
    return "\n\n".join(blocks), count


def iter_ppt_records(stream: bytes) -> Iterator[Tuple[int, bool, bytes]]:
    """
    Parcourt les enregistrements du flux "PowerPoint Document".
    Produit (type, dans_un_master, corps) pour les atomes et
    (type, dans_un_master, b"") pour les conteneurs.
    """
    offset = 0
    size = len(stream)
    stack: List[Tuple[int, int]] = []  # (fin, type) des conteneurs ouverts
    while offset + 8 <= size:
        while stack and offset >= stack[-1][0]:
            stack.pop()
        ver_inst, rec_type, rec_len = struct.unpack_from("<HHI", stream, offset)
        in_master = any(t == RT_MAIN_MASTER for _, t in stack)
        if ver_inst & 0x000F == 0x000F:
            stack.append((offset + 8 + rec_len, rec_type))
            yield rec_type, in_master, b""
            offset += 8
            continue
        body = stream[offset + 8: offset + 8 + rec_len]
        yield rec_type, in_master, body
        offset += 8 + rec_len


def extract_ppt_stream(stream: bytes) -> Tuple[str, int]:
    texts: List[str] = []
    seen = set()
    slides = 0
    for rec_type, in_master, body in iter_ppt_records(stream):
        if rec_type == RT_SLIDE:
            slides += 1
            continue
        if in_master:
            continue
        if rec_type == RT_TEXT_CHARS_ATOM:
            text = body.decode("utf-16-le", errors="ignore")
        elif rec_type == RT_TEXT_BYTES_ATOM:
            text = body.decode("latin-1")
        else:
            continue
        # PowerPoint sépare les paragraphes par \r
        text = text.replace("\r", "\n").replace("\x0b", "\n").strip()
        if text and text not in seen:
            seen.add(text)
            texts.append(text)
    return "\n".join(texts), slides


def extract_ppt(data: bytes) -> Tuple[str, int]:
    """
    Texte d'un .ppt (format binaire OLE). Retourne (texte, nombre de slides).
    """
    with olefile.OleFileIO(io.BytesIO(data)) as ole:
        if not ole.exists(PPT_DOCUMENT_STREAM):
            raise ValueError("flux 'PowerPoint Document' absent")
        stream = ole.openstream(PPT_DOCUMENT_STREAM).read()
    return extract_ppt_stream(stream)
