from __future__ import annotations
from typing import List, Optional
from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QFormLayout, QComboBox, QTextEdit, QDialogButtonBox,
    QHBoxLayout, QPushButton, QTableWidget, QTableWidgetItem, QHeaderView,
    QLabel, QDateEdit, QLineEdit, QCheckBox
)
from PySide6.QtCore import QDate, Qt

from facturier.models.invoice import Invoice, LineItem
from facturier.services.calculator import calculate_totals, format_currency
from facturier.services.document_service import DocumentService

DOCUMENT_TYPES = [("invoice", "Facture"), ("quote", "Devis"), ("proforma", "Proforma")]
STATUSES = ["draft", "sent", "paid", "overdue", "cancelled"]
COLUMNS = ["Désignation", "Qté", "PU HT", "TVA %", "Remise", "Remise en €"]


def _to_float(txt: str, default: float = 0.0) -> float:
    try:
        return float((txt or "").replace(",", ".").replace(" ", ""))
    except ValueError:
        return default


class DocumentEditor(QDialog):
    def __init__(self, parent=None, documents: DocumentService | None = None, invoice: Optional[Invoice] = None):
        super().__init__(parent)
        assert documents is not None
        self.setWindowTitle(("Modifier" if invoice else "Créer") + " un document")
        self.setModal(True)
        self.documents = documents
        self._orig = invoice
        self._draft = invoice.model_copy(deep=True) if invoice else documents.new_draft()

        self.cb_type = QComboBox()
        for key, label in DOCUMENT_TYPES:
            self.cb_type.addItem(label, key)
        self.ed_number = QLineEdit()
        self.cb_client = QComboBox()
        for c in documents.clients.list_clients():
            self.cb_client.addItem(f"{c.name} ({c.email})", c.id)
        self.cb_status = QComboBox(); self.cb_status.addItems(STATUSES)
        self.ed_date = QDateEdit(); self.ed_date.setCalendarPopup(True)
        self.chk_due = QCheckBox("Échéance")
        self.ed_due = QDateEdit(); self.ed_due.setCalendarPopup(True)
        self.ed_notes = QTextEdit()
        self.ed_terms = QTextEdit()
        self.lab_total = QLabel()

        self.tbl = QTableWidget(0, len(COLUMNS))
        self.tbl.setHorizontalHeaderLabels(COLUMNS)
        self.tbl.horizontalHeader().setSectionResizeMode(QHeaderView.Stretch)
        self.tbl.itemChanged.connect(lambda _it: self._update_totals())

        btn_add = QPushButton("Ajouter une ligne")
        btn_del = QPushButton("Supprimer la ligne")
        btn_add.clicked.connect(self._add_line)
        btn_del.clicked.connect(self._del_line)

        top = QFormLayout()
        top.addRow("Type", self.cb_type)
        top.addRow("Numéro", self.ed_number)
        top.addRow("Client", self.cb_client)
        top.addRow("Statut", self.cb_status)
        top.addRow("Date", self.ed_date)
        top.addRow(self.chk_due, self.ed_due)
        top.addRow("Notes", self.ed_notes)
        top.addRow("Conditions", self.ed_terms)

        bar = QHBoxLayout()
        bar.addWidget(btn_add); bar.addWidget(btn_del); bar.addStretch(1); bar.addWidget(self.lab_total)

        btns = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        btns.accepted.connect(self.accept)
        btns.rejected.connect(self.reject)

        lay = QVBoxLayout(self)
        lay.addLayout(top)
        lay.addLayout(bar)
        lay.addWidget(self.tbl)
        lay.addWidget(btns)

        self.cb_type.currentIndexChanged.connect(self._on_type_changed)
        self._fill_from(self._draft)

    # -------- UI helpers --------
    def _fill_from(self, d: Invoice):
        self.cb_type.blockSignals(True)
        self.cb_type.setCurrentIndex(max(0, self.cb_type.findData(d.document_type)))
        self.cb_type.blockSignals(False)
        self.ed_number.setText(d.number)
        if d.client:
            self.cb_client.setCurrentIndex(max(0, self.cb_client.findData(d.client.id)))
        self.cb_status.setCurrentText(d.status if d.status in STATUSES else "draft")
        self.ed_date.setDate(QDate(d.date.year, d.date.month, d.date.day))
        self.chk_due.setChecked(d.due_date is not None)
        due = d.due_date or d.date
        self.ed_due.setDate(QDate(due.year, due.month, due.day))
        self.ed_notes.setPlainText(d.notes or "")
        self.ed_terms.setPlainText(d.terms or "")
        self.tbl.blockSignals(True)
        self.tbl.setRowCount(0)
        for it in d.items:
            self._append_row(it)
        self.tbl.blockSignals(False)
        self._update_totals()

    def _append_row(self, it: LineItem):
        r = self.tbl.rowCount()
        self.tbl.insertRow(r)
        values = [it.designation, f"{it.quantity:g}", f"{it.unit_price:g}", f"{it.vat_rate:g}", f"{it.discount:g}"]
        for col, v in enumerate(values):
            self.tbl.setItem(r, col, QTableWidgetItem(v))
        chk = QTableWidgetItem("")
        chk.setCheckState(Qt.CheckState.Checked if it.discount_type == "fixed_amount" else Qt.CheckState.Unchecked)
        self.tbl.setItem(r, 5, chk)

    def _on_type_changed(self):
        # nouveau document : le numéro suit le type choisi
        if not self._orig:
            self.ed_number.setText(self.documents.numbering.generate_invoice_number(self.cb_type.currentData()))

    def _read_items(self) -> List[LineItem]:
        items: List[LineItem] = []
        ids = [it.id for it in self._draft.items]
        for r in range(self.tbl.rowCount()):
            cell = lambda c: (self.tbl.item(r, c).text() if self.tbl.item(r, c) else "")
            fixed = self.tbl.item(r, 5) is not None and self.tbl.item(r, 5).checkState() == Qt.CheckState.Checked
            data = dict(
                designation=cell(0).strip(),
                quantity=_to_float(cell(1), 1.0),
                unit_price=_to_float(cell(2)),
                vat_rate=_to_float(cell(3), 20.0),
                discount=_to_float(cell(4)),
                discount_type="fixed_amount" if fixed else "percentage",
            )
            if r < len(ids):
                data["id"] = ids[r]
            items.append(LineItem(**data))
        return items

    def _update_totals(self):
        t = calculate_totals(self._read_items())
        self.lab_total.setText(
            f"HT : {format_currency(t.total_ht)}  TVA : {format_currency(t.total_vat)}  "
            f"TTC : {format_currency(t.total_ttc)}"
        )

    def _add_line(self):
        it = self.documents.new_item()
        self._draft.items.append(it)
        self._append_row(it)
        self._update_totals()

    def _del_line(self):
        row = self.tbl.currentRow()
        if row < 0: return
        self.tbl.removeRow(row)
        if row < len(self._draft.items):
            del self._draft.items[row]
        self._update_totals()

    # -------- Result --------
    def get_document(self) -> Invoice:
        """Brouillon complété ; la validation (client, lignes) est faite à l'enregistrement."""
        client_id = self.cb_client.currentData()
        client = self.documents.clients.get_by_id(client_id) if client_id else None
        return self._draft.model_copy(update={
            "document_type": self.cb_type.currentData(),
            "number": self.ed_number.text().strip(),
            "client": client.model_copy(deep=True) if client else None,
            "status": self.cb_status.currentText(),
            "date": self.ed_date.date().toPython(),
            "due_date": self.ed_due.date().toPython() if self.chk_due.isChecked() else None,
            "notes": self.ed_notes.toPlainText().strip(),
            "terms": self.ed_terms.toPlainText().strip(),
            "items": self._read_items(),
        })
