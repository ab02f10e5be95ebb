import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence

from studyforge.core.errors import FileTooLarge, UnsupportedFormat, UploadFailed
from studyforge.models.files import UploadedFile
from studyforge.services.extractor import ACCEPTED_MIME_TYPES
from studyforge.services.store import SessionStore
from studyforge.utils.text_utils import sanitize_base_name

logger = logging.getLogger(__name__)


@dataclass
class IncomingFile:
    original_name: str
    mime_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class UploadService:
    """
    Service de gestion des fichiers uploadés (disque local).
    Valide, écrit les octets, puis crée les enregistrements File (statut uploaded).
    """

    def __init__(self, store: SessionStore, upload_dir: str = "./uploads", max_upload_mb: int = 50):
        self.store = store
        self.base_path = Path(upload_dir)
        self.max_upload_bytes = max_upload_mb * 1024 * 1024
        self.base_path.mkdir(parents=True, exist_ok=True)

    def validate(self, files: Sequence[IncomingFile]) -> None:
        """
        Refuse tout le lot avant la moindre écriture si un fichier est invalide.
        """
        for f in files:
            mime = (f.mime_type or "").split(";")[0].strip().lower()
            if mime not in ACCEPTED_MIME_TYPES:
                raise UnsupportedFormat(
                    f"Invalid file type for {f.original_name}. Only PDF and PowerPoint files are allowed."
                )
            if f.size > self.max_upload_bytes:
                raise FileTooLarge(
                    f"{f.original_name} is too large (max {self.max_upload_bytes // (1024 * 1024)} MB)"
                )

    def stored_name(self, original_name: str) -> str:
        """
        Réserve <unix-millis>_<base assainie><extension> sur disque, avec suffixe -n
        si collision. Le fichier est créé vide (ouverture exclusive) : deux uploads
        concurrents ne peuvent pas obtenir le même nom.
        """
        base, ext = sanitize_base_name(original_name)
        stamp = int(time.time() * 1000)
        name = f"{stamp}_{base}{ext}"
        n = 1
        while True:
            try:
                self.path_for(name).open("xb").close()
            except FileExistsError:
                name = f"{stamp}_{base}-{n}{ext}"
                n += 1
                continue
            return name

    def path_for(self, stored_name: str) -> Path:
        return self.base_path / stored_name

    async def save(self, f: IncomingFile) -> str:
        # nom réservé avant le premier await
        name = self.stored_name(f.original_name)
        path = self.path_for(name)
        try:
            await asyncio.to_thread(path.write_bytes, f.data)
        except OSError:
            path.unlink(missing_ok=True)
            raise
        return name

    async def register(self, session_id: str, files: Sequence[IncomingFile]) -> List[UploadedFile]:
        """
        Sauvegarde chaque fichier puis crée son enregistrement.
        Un échec individuel est journalisé et le lot continue ;
        si tout échoue, UploadFailed.
        """
        self.validate(files)

        created: List[UploadedFile] = []
        for f in files:
            try:
                name = await self.save(f)
                record = self.store.create_file(
                    session_id=session_id,
                    filename=name,
                    original_name=f.original_name,
                    mime_type=f.mime_type.split(";")[0].strip().lower(),
                    size=f.size,
                )
            except OSError as e:
                logger.error("Écriture de %s impossible : %s", f.original_name, e)
                continue
            created.append(record)
            logger.info("Fichier %s enregistré (%s, %d octets)", record.id, name, f.size)

        if files and not created:
            raise UploadFailed()
        return created
