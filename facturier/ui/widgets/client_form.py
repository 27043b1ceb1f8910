from __future__ import annotations
from typing import Any, Dict, Optional

from PySide6.QtCore import Qt
from PySide6.QtWidgets import QDialog, QDialogButtonBox, QFormLayout, QLineEdit, QTextEdit, QVBoxLayout

from facturier.models.client import Client

# champ -> libellé ; l'adresse (multi-ligne) est gérée à part
LINE_FIELDS = (
    ("name", "Nom (obligatoire)"),
    ("email", "Email (obligatoire)"),
    ("phone", "Téléphone"),
    ("siret", "SIRET"),
    ("vat_number", "N° TVA intracommunautaire"),
)
OPTIONAL_FIELDS = {"siret", "vat_number"}


class ClientForm(QDialog):
    def __init__(self, parent=None, client: Optional[Client] = None):
        super().__init__(parent)
        self.setWindowTitle("Modifier le client" if client else "Nouveau client")
        self.setModal(True)
        self.resize(480, 0)

        self.edits: Dict[str, QLineEdit] = {key: QLineEdit() for key, _ in LINE_FIELDS}
        self.edits["email"].setPlaceholderText("contact@client.fr")
        self.ed_address = QTextEdit()
        self.ed_address.setFixedHeight(70)

        form = QFormLayout()
        for key, label in LINE_FIELDS[:3]:
            form.addRow(label, self.edits[key])
        form.addRow("Adresse", self.ed_address)
        for key, label in LINE_FIELDS[3:]:
            form.addRow(label, self.edits[key])

        buttons = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)

        lay = QVBoxLayout(self)
        lay.addLayout(form)
        lay.addWidget(buttons)

        if client:
            for key, ed in self.edits.items():
                ed.setText(getattr(client, key) or "")
            self.ed_address.setPlainText(client.address)

    def get_fields(self) -> Optional[Dict[str, Any]]:
        """Champs saisis, ou None si nom/email manquant (le format de l'email est contrôlé par le service)."""
        fields: Dict[str, Any] = {key: ed.text().strip() for key, ed in self.edits.items()}
        for required in ("name", "email"):
            if not fields[required]:
                self.edits[required].setFocus(Qt.FocusReason.ActiveWindowFocusReason)
                return None
        for key in OPTIONAL_FIELDS:
            fields[key] = fields[key] or None
        fields["address"] = self.ed_address.toPlainText().strip()
        return fields
