# facturier/services/pdf_service.py
from __future__ import annotations
import logging
import os
import re
from pathlib import Path
from shutil import which
from typing import Any, Dict, Optional

import pdfkit  # utilisé si wkhtmltopdf dispo
from jinja2 import Environment, FileSystemLoader, select_autoescape

from facturier import settings as app_settings
from facturier.errors import RenderError
from facturier.models.invoice import Invoice
from facturier.services.calculator import (
    discount_amount, format_currency, line_net_ht,
)

logger = logging.getLogger(__name__)

DOCUMENT_TITLES = {"invoice": "FACTURE", "quote": "DEVIS", "proforma": "FACTURE PROFORMA"}


# ---------- Formats ----------
def _fr_date(d) -> str:
    return d.strftime("%d/%m/%Y") if d else ""


def _qty(v: float) -> str:
    return f"{v:g}".replace(".", ",")


def _slug(text: str) -> str:
    text = (text or "").strip()
    text = re.sub(r'[\\/:*?"<>|\n\r\t]', "_", text)
    text = re.sub(r"\s+", " ", text)
    return text or "document"


# ---------- PDF helpers ----------
def _clean_path(p: str) -> str:
    """Corrige 'C\\:\\Program Files\\...' -> 'C:\\Program Files\\...' et normalise."""
    if not p:
        return ""
    p = p.strip().strip('"').strip("'")
    p = p.replace("\\:", ":")
    return os.path.normpath(p)


def find_wkhtmltopdf(settings: Optional[Dict[str, Any]] = None) -> Optional[str]:
    """Env/settings.json, chemins Windows connus, puis PATH."""
    configured = app_settings.wkhtmltopdf_setting(settings)
    if configured:
        path = _clean_path(configured)
        if Path(path).is_file():
            return path
    for c in (
        r"C:\Program Files\wkhtmltopdf\bin\wkhtmltopdf.exe",
        r"C:\Program Files (x86)\wkhtmltopdf\bin\wkhtmltopdf.exe",
    ):
        if Path(c).is_file():
            return c
    found = which("wkhtmltopdf")
    return _clean_path(found) if found else None


def _render_pdf_with_weasyprint(html: str, out_path: Path, base_url: Optional[str]) -> None:
    """Fallback WeasyPrint (si wkhtmltopdf absent)."""
    try:
        from weasyprint import HTML, CSS
    except ImportError as e:
        raise RenderError(
            "Aucun wkhtmltopdf trouvé et WeasyPrint n'est pas installé. "
            "Installe WeasyPrint (pip install weasyprint) ou configure wkhtmltopdf.\n"
            f"Détails: {e}"
        ) from e

    css_file = app_settings.TEMPLATES_DIR / "stylesheet.css"
    styles = [CSS(filename=str(css_file))] if css_file.exists() else None
    HTML(string=html, base_url=base_url).write_pdf(str(out_path), stylesheets=styles)


# ---------- Service ----------
class PdfService:
    """Rendu imprimable d'un document finalisé. Lecture seule : ne modifie jamais le dépôt."""

    def __init__(self, settings: Optional[Dict[str, Any]] = None, templates_dir: Optional[Path] = None) -> None:
        self.settings = settings or {}
        self.templates_dir = Path(templates_dir) if templates_dir else app_settings.TEMPLATES_DIR
        self.env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=select_autoescape(["html", "xml"]),
        )
        self.env.filters["money"] = format_currency
        self.env.filters["fr_date"] = _fr_date
        self.env.filters["qty"] = _qty

    def render_html(self, doc: Invoice) -> str:
        tpl = self.env.get_template("invoice.html")
        lines = [
            {
                "designation": it.designation,
                "quantity": it.quantity,
                "unit_price": it.unit_price,
                "vat_rate": it.vat_rate,
                "discount": discount_amount(it),
                "total_ht": line_net_ht(it),
            }
            for it in doc.items
        ]
        return tpl.render(
            title=DOCUMENT_TITLES.get(doc.document_type, "DOCUMENT"),
            doc=doc,
            lines=lines,
            company=doc.company,
            client=doc.client,
            is_sub_invoice=doc.is_sub_invoice,
        )

    def export_pdf(self, doc: Invoice, out_dir: Optional[os.PathLike | str] = None) -> str:
        """
        Génère le PDF du document.
        Essaie wkhtmltopdf (pdfkit) en priorité, sinon fallback WeasyPrint.
        """
        html = self.render_html(doc)
        exports_dir = Path(out_dir) if out_dir else app_settings.data_dir().parent / "exports"
        exports_dir.mkdir(parents=True, exist_ok=True)
        out_path = exports_dir / f"{_slug(doc.number or doc.id)}.pdf"
        base_url = str(self.templates_dir.resolve())

        # 1) wkhtmltopdf d'abord
        wkhtml = find_wkhtmltopdf(self.settings)
        if wkhtml:
            try:
                config = pdfkit.configuration(wkhtmltopdf=wkhtml)
                options = {"enable-local-file-access": None, "quiet": "", "encoding": "UTF-8"}
                css_path = self.templates_dir / "stylesheet.css"
                pdfkit.from_string(html, str(out_path), options=options, configuration=config,
                                   css=str(css_path) if css_path.exists() else None)
                return str(out_path)
            except (OSError, IOError) as e:
                logger.warning("Échec wkhtmltopdf (%s). Fallback WeasyPrint...", e)

        # 2) Fallback WeasyPrint
        try:
            _render_pdf_with_weasyprint(html, out_path, base_url=base_url)
        except RenderError:
            raise
        except Exception as e:
            raise RenderError(f"Échec de génération du PDF {out_path.name} : {e}") from e
        return str(out_path)
