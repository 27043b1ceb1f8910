from __future__ import annotations

import glob
import json
import logging
import shutil
import threading
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Mapping, Union

logger = logging.getLogger(__name__)

EMPTY_STATE: Dict[str, Any] = {"invoices": [], "sub_invoices": [], "clients": [], "company": None}


def _json_default(o: Any) -> Any:
    if isinstance(o, (date, datetime)):
        return o.isoformat()
    raise TypeError(f"Object of type {o.__class__.__name__} is not JSON serializable")


class JsonStateStore:
    """
    Blob JSON unique contenant tout l'état de l'application.
    - load() au démarrage, save() après chaque modification (pas d'écriture partielle)
    - Rotation de backups (backup_enabled, backup_keep)
    - N'écrit pas si le contenu ne change pas (réduction du bruit et des .bak)
    """

    def __init__(
        self,
        filepath: Union[str, Path],
        *,
        backup_enabled: bool = True,
        backup_keep: int = 5,
    ) -> None:
        self.filepath = Path(filepath)
        self._lock = threading.Lock()
        self.backup_enabled = backup_enabled
        self.backup_keep = max(0, int(backup_keep))
        self.filepath.parent.mkdir(parents=True, exist_ok=True)

    # ---------------- Lecture ---------------- #

    def load(self) -> Dict[str, Any]:
        try:
            with self.filepath.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return dict(EMPTY_STATE)
        except json.JSONDecodeError as e:
            # Fichier corrompu → copie de côté et repart d'un état vide
            backup = self.filepath.with_suffix(".corrupt.json")
            shutil.copy2(self.filepath, backup)
            logger.warning("État illisible (%s), copié vers %s", e, backup.name)
            return dict(EMPTY_STATE)
        if not isinstance(data, dict):
            logger.warning("État inattendu dans %s (%s), ignoré", self.filepath.name, type(data).__name__)
            return dict(EMPTY_STATE)
        return {**EMPTY_STATE, **data}

    # ---------------- Écriture ---------------- #

    def _rotate_backups(self) -> None:
        if not self.backup_enabled or self.backup_keep <= 0:
            return
        pattern = str(self.filepath.with_suffix(".*.bak.json"))
        files = sorted(glob.glob(pattern))
        # garde les plus récents
        if len(files) > self.backup_keep:
            for old in files[: len(files) - self.backup_keep]:
                try:
                    Path(old).unlink(missing_ok=True)
                except OSError as e:
                    logger.warning("Backup %s non supprimé : %s", old, e)

    def save(self, snapshot: Mapping[str, Any]) -> bool:
        """Écrit l'état complet ; renvoie False si rien n'a changé."""
        with self._lock:
            new_dump = json.dumps(dict(snapshot), ensure_ascii=False, indent=2, default=_json_default)

            # si contenu identique → ne rien faire
            if self.filepath.exists():
                if self.filepath.read_text(encoding="utf-8") == new_dump:
                    return False

                # backup
                if self.backup_enabled:
                    ts = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
                    backup = self.filepath.with_suffix(f".{ts}.bak.json")
                    shutil.copy2(self.filepath, backup)
                    self._rotate_backups()

            # write
            tmp = self.filepath.with_suffix(".tmp")
            with tmp.open("w", encoding="utf-8") as f:
                f.write(new_dump)
            tmp.replace(self.filepath)
            return True
