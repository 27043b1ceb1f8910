from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# --- Chemins de base ---
ROOT_DIR = Path(__file__).resolve().parents[1]
PACKAGE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = PACKAGE_DIR / "templates" / "pdf"

SETTINGS_FILE = "settings.json"
STATE_FILE = "facturier.json"

DEFAULT_VAT_RATE = 20.0
DEFAULT_TERMS = "Paiement à 30 jours. Pénalités de retard : 3 fois le taux légal."

DEFAULT_COMPANY: Dict[str, Any] = {
    "name": "Mon Entreprise",
    "address": "123 Rue de la Paix\n75001 Paris, France",
    "phone": "+33 1 23 45 67 89",
    "email": "contact@monentreprise.fr",
    "vat_number": "FR12345678901",
    "siret": "12345678901234",
}

# client de démonstration créé au premier lancement
SAMPLE_CLIENT: Dict[str, Any] = {
    "id": "1",
    "name": "Client Exemple SARL",
    "address": "456 Avenue des Entreprises\n69000 Lyon, France",
    "email": "contact@clientexemple.fr",
    "phone": "+33 4 78 90 12 34",
    "siret": "98765432109876",
    "vat_number": "FR98765432109",
}


def data_dir() -> Path:
    """Dossier des données : $FACTURIER_DATA_DIR, sinon ./data à la racine du projet."""
    env = os.environ.get("FACTURIER_DATA_DIR")
    if env:
        return Path(env).expanduser()
    return ROOT_DIR / "data"


# ---------- settings.json ----------
def load_settings(base: Optional[os.PathLike | str] = None) -> Dict[str, Any]:
    p = Path(base) if base else data_dir()
    path = p / SETTINGS_FILE
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("settings.json illisible (%s), valeurs par défaut utilisées", e)
        return {}
    return data if isinstance(data, dict) else {}


def default_company(settings: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    s = settings or {}
    company = s.get("company") if isinstance(s.get("company"), dict) else {}
    return {**DEFAULT_COMPANY, **company}


def default_terms(settings: Optional[Dict[str, Any]] = None) -> str:
    return str((settings or {}).get("default_terms") or DEFAULT_TERMS)


def default_vat_rate(settings: Optional[Dict[str, Any]] = None) -> float:
    try:
        return float((settings or {}).get("default_vat_rate", DEFAULT_VAT_RATE))
    except (TypeError, ValueError):
        return DEFAULT_VAT_RATE


def wkhtmltopdf_setting(settings: Optional[Dict[str, Any]] = None) -> Optional[str]:
    """Chemin wkhtmltopdf : variables d'env (WKHTMLTOPDF, WKHTMLTOPDF_CMD) puis settings.json."""
    for env_key in ("WKHTMLTOPDF", "WKHTMLTOPDF_CMD"):
        val = os.environ.get(env_key)
        if val:
            return val
    s = settings or {}
    pdf_conf = s.get("pdf", {}) if isinstance(s.get("pdf"), dict) else {}
    return pdf_conf.get("wkhtmltopdf_path") or s.get("wkhtmltopdf_path")


def configure_logging(level: Optional[str] = None) -> None:
    lvl = (level or os.environ.get("FACTURIER_LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, lvl, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
