import io
import json
import struct
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from studyforge.core.config import get_settings
from studyforge.main import create_app
from studyforge.services.generation import GenerationClient
from studyforge.services.store import MemorySessionStore

PDF_MIME = "application/pdf"
PPTX_MIME = "application/vnd.openxmlformats-officedocument.presentationml.presentation"

QUIZ_JSON = {
    "title": "Photosynthesis Quiz",
    "questions": [
        {
            "question": "What does photosynthesis convert light into?",
            "options": ["Heat", "Chemical energy", "Sound", "Magnetism"],
            "correctAnswer": 1,
            "explanation": "Light energy is stored as chemical energy in glucose.",
        },
        {
            "id": "q-chloro",
            "question": "Which pigment absorbs light?",
            "options": ["Chlorophyll", "Keratin", "Melanin", "Hemoglobin"],
            "correctAnswer": 0,
            "explanation": "Chlorophyll captures light in the chloroplast.",
        },
    ],
}

NOTES_JSON = {
    "title": "Photosynthesis",
    "sections": [
        {
            "heading": "Overview",
            "content": "Plants turn light into chemical energy.",
            "keyPoints": ["Happens in chloroplasts", "Produces oxygen"],
        }
    ],
    "summary": "Light in, sugar out.",
}

NOTES_HTML = "<h1>Photosynthesis</h1><p>Plants turn <mark>light</mark> into sugar.</p>"


class FakeCompletions:
    """
    Remplace client.chat.completions : répond selon le type de prompt.
    Chaque réponse peut être surchargée (texte ou exception).
    """

    def __init__(self):
        self.calls = []
        self.quiz_reply = json.dumps(QUIZ_JSON)
        self.notes_reply = json.dumps(NOTES_JSON)
        self.html_reply = NOTES_HTML

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        prompt = kwargs["messages"][-1]["content"]
        if "quiz questions" in prompt:
            reply = self.quiz_reply
        elif "Return ONLY HTML" in prompt:
            reply = self.html_reply
        else:
            reply = self.notes_reply
        if isinstance(reply, Exception):
            raise reply
        message = SimpleNamespace(content=reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    def prompts(self):
        return [c["messages"][-1]["content"] for c in self.calls]


class FakeLLM:
    def __init__(self):
        self.completions = FakeCompletions()
        self.chat = SimpleNamespace(completions=self.completions)


def build_pdf(lines):
    """
    PDF minimal mais valide (une page, police Helvetica) dont pypdf sait extraire le texte.
    """
    def esc(s):
        return s.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")

    ops = " ".join(f"({esc(line)}) Tj 0 -24 Td" for line in lines)
    stream = f"BT /F1 18 Tf 72 720 Td {ops} ET"
    objects = [
        "<< /Type /Catalog /Pages 2 0 R >>",
        "<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        "/Resources << /Font << /F1 4 0 R >> >> /Contents 5 0 R >>",
        "<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
        f"<< /Length {len(stream)} >>\nstream\n{stream}\nendstream",
    ]
    out = b"%PDF-1.4\n"
    offsets = []
    for i, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += f"{i} 0 obj\n{body}\nendobj\n".encode("latin-1")
    xref = len(out)
    out += f"xref\n0 {len(objects) + 1}\n0000000000 65535 f \n".encode("ascii")
    for off in offsets:
        out += f"{off:010d} 00000 n \n".encode("ascii")
    out += (
        f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\nstartxref\n{xref}\n%%EOF\n"
    ).encode("ascii")
    return out


def build_pptx(slides):
    """
    slides : liste de (titre, corps, notes ou None).
    """
    from pptx import Presentation

    prs = Presentation()
    layout = prs.slide_layouts[1]  # Title and Content
    for title, body, notes in slides:
        slide = prs.slides.add_slide(layout)
        slide.shapes.title.text = title
        slide.placeholders[1].text = body
        if notes:
            slide.notes_slide.notes_text_frame.text = notes
    buf = io.BytesIO()
    prs.save(buf)
    return buf.getvalue()


def ppt_record(rec_type, body=b"", container=False):
    ver_inst = 0x000F if container else 0x0000
    return struct.pack("<HHI", ver_inst, rec_type, len(body)) + body


def build_ppt(document_stream):
    """
    Fichier OLE2 (version 3, secteurs de 512 octets) contenant le seul flux
    "PowerPoint Document". Le flux est complété au-delà de 4096 octets
    pour rester dans la FAT principale (pas de mini-FAT).
    """
    sector = 512
    free, end_of_chain, fat_sect, no_stream = 0xFFFFFFFF, 0xFFFFFFFE, 0xFFFFFFFD, 0xFFFFFFFF

    if len(document_stream) < 4096:
        padding = 4096 - len(document_stream)
        document_stream += ppt_record(0x0FFF, b"\x00" * max(padding - 8, 0))
    stream_size = len(document_stream)
    n_stream = -(-stream_size // sector)

    # secteur 0 : FAT, secteur 1 : répertoire, secteurs 2.. : flux
    fat = [fat_sect, end_of_chain]
    fat += [2 + i + 1 for i in range(n_stream - 1)] + [end_of_chain]
    assert len(fat) <= sector // 4
    fat += [free] * (sector // 4 - len(fat))

    def dir_entry(name, entry_type, child, start, size):
        raw = (name + "\x00").encode("utf-16-le") if name else b""
        return (
            raw.ljust(64, b"\x00")
            + struct.pack("<HBB", len(raw), entry_type, 1)
            + struct.pack("<III", no_stream, no_stream, child)
            + b"\x00" * 16  # clsid
            + b"\x00" * 4  # state bits
            + b"\x00" * 16  # dates
            + struct.pack("<IQ", start, size)
        )

    directory = (
        dir_entry("Root Entry", 5, 1, end_of_chain, 0)
        + dir_entry("PowerPoint Document", 2, no_stream, 2, stream_size)
        + dir_entry("", 0, no_stream, 0, 0) * 2
    )

    header = (
        b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
        + b"\x00" * 16
        + struct.pack("<HHHHH", 0x003E, 0x0003, 0xFFFE, 9, 6)
        + b"\x00" * 6
        + struct.pack("<IIIIIIIII", 0, 1, 1, 0, 4096, end_of_chain, 0, end_of_chain, 0)
        + struct.pack("<I", 0)
        + struct.pack("<I", free) * 108
    )
    body = struct.pack(f"<{len(fat)}I", *fat) + directory
    body += document_stream.ljust(n_stream * sector, b"\x00")
    return header + body


@pytest.fixture
def ppt_bytes():
    master = ppt_record(
        0x03F8,
        ppt_record(0x0FA0, "Click to edit Master title style".encode("utf-16-le")),
        container=True,
    )
    slide_1 = ppt_record(
        0x03EE,
        ppt_record(0x0FA0, "Krebs Cycle\rProduces NADH and FADH2".encode("utf-16-le")),
        container=True,
    )
    slide_2 = ppt_record(0x03EE, ppt_record(0x0FA8, b"Electron transport chain"), container=True)
    return build_ppt(master + slide_1 + slide_2)


@pytest.fixture
def pdf_bytes():
    return build_pdf(
        [
            "Photosynthesis converts light energy into chemical energy.",
            "Chlorophyll absorbs light in the chloroplast.",
        ]
    )


@pytest.fixture
def pptx_bytes():
    return build_pptx(
        [
            ("Cell Biology", "Mitochondria produce ATP", "Remember the Krebs cycle"),
            ("Membranes", "Lipid bilayers are selectively permeable", None),
        ]
    )


@pytest.fixture
def settings(tmp_path, monkeypatch):
    """
    Settings isolés : UPLOAD_DIR temporaire et variables d'env forcées.
    """
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("APP_NAME", "StudyForge API (tests)")
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("MAX_UPLOAD_MB", "2")  # limite faible pour tests
    monkeypatch.setenv("CORS_ORIGINS", "http://localhost")
    monkeypatch.setenv("STORE_BACKEND", "memory")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("GENERATION_TIMEOUT_SECONDS", "5")

    # IMPORTANT: vider le cache des settings pour prendre en compte les env
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def store():
    return MemorySessionStore()


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def generator(settings, fake_llm):
    return GenerationClient(settings, client=fake_llm)


@pytest.fixture
def test_client(settings, store, generator):
    app = create_app(settings=settings, store=store, generator=generator)
    return TestClient(app)
