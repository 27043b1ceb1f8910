from __future__ import annotations
from typing import List
from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QHBoxLayout, QTableWidget, QHeaderView, QDoubleSpinBox,
    QPushButton, QLabel, QDialogButtonBox
)

from facturier.models.invoice import Invoice
from facturier.services.calculator import format_currency
from facturier.services.splitter import (
    MAX_SPLITS, MIN_SPLITS, Split, amount_for_percentage, even_splits, next_split,
    percentage_for_amount, split_summary,
)


class SplitDialog(QDialog):
    """Éditeur de répartition : pourcentage et montant liés, total contrôlé en direct."""

    def __init__(self, parent, invoice: Invoice):
        super().__init__(parent)
        self.invoice = invoice
        self.setWindowTitle(f"Diviser la facture {invoice.number}")
        self.setModal(True)
        self._splits: List[Split] = even_splits(invoice.total_ttc)
        self._syncing = False

        self.tbl = QTableWidget(0, 2)
        self.tbl.setHorizontalHeaderLabels(["Pourcentage (%)", "Montant (€)"])
        self.tbl.horizontalHeader().setSectionResizeMode(QHeaderView.Stretch)

        self.btn_add = QPushButton("Ajouter une sous-facture")
        self.btn_del = QPushButton("Retirer la ligne")
        self.btn_add.clicked.connect(self._add_split)
        self.btn_del.clicked.connect(self._remove_split)

        self.lab_summary = QLabel()
        self.btns = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        self.btns.accepted.connect(self.accept)
        self.btns.rejected.connect(self.reject)

        bar = QHBoxLayout()
        bar.addWidget(self.btn_add); bar.addWidget(self.btn_del); bar.addStretch(1)

        lay = QVBoxLayout(self)
        lay.addWidget(QLabel(f"Montant total à diviser : {format_currency(invoice.total_ttc)}"))
        lay.addWidget(self.tbl)
        lay.addLayout(bar)
        lay.addWidget(self.lab_summary)
        lay.addWidget(self.btns)

        self._refresh_table()

    # -------- UI helpers --------
    def _refresh_table(self):
        self._syncing = True
        self.tbl.setRowCount(0)
        for row, sp in enumerate(self._splits):
            self.tbl.insertRow(row)
            sp_pct = QDoubleSpinBox(); sp_pct.setRange(0.0, 100.0); sp_pct.setDecimals(2); sp_pct.setValue(sp.percentage)
            sp_amt = QDoubleSpinBox(); sp_amt.setRange(0.0, 1e12); sp_amt.setDecimals(2); sp_amt.setValue(sp.amount)
            sp_pct.valueChanged.connect(lambda v, r=row: self._on_percentage(r, v))
            sp_amt.valueChanged.connect(lambda v, r=row: self._on_amount(r, v))
            self.tbl.setCellWidget(row, 0, sp_pct)
            self.tbl.setCellWidget(row, 1, sp_amt)
        self._syncing = False
        self._update_summary()

    def _set_cell(self, row: int, col: int, value: float):
        # met à jour la cellule jumelle sans reconstruire la table (garde le focus)
        self._syncing = True
        self.tbl.cellWidget(row, col).setValue(value)
        self._syncing = False

    def _on_percentage(self, row: int, value: float):
        if self._syncing:
            return
        amount = amount_for_percentage(self.invoice.total_ttc, value)
        self._splits[row] = Split(percentage=value, amount=amount)
        self._set_cell(row, 1, amount)
        self._update_summary()

    def _on_amount(self, row: int, value: float):
        if self._syncing:
            return
        pct = percentage_for_amount(self.invoice.total_ttc, value)
        self._splits[row] = Split(percentage=pct, amount=value)
        self._set_cell(row, 0, pct)
        self._update_summary()

    def _add_split(self):
        if len(self._splits) >= MAX_SPLITS:
            return
        self._splits.append(next_split(self.invoice.total_ttc, self._splits))
        self._refresh_table()

    def _remove_split(self):
        row = self.tbl.currentRow()
        if row < 0 or len(self._splits) <= MIN_SPLITS:
            return
        del self._splits[row]
        self._refresh_table()

    def _update_summary(self):
        s = split_summary(self.invoice.total_ttc, self._splits)
        self.lab_summary.setText(
            f"Total pourcentages : {s.total_percentage:.2f}%   "
            f"Total montants : {format_currency(s.total_amount)}   "
            f"Différence : {format_currency(s.difference)}"
        )
        self.btns.button(QDialogButtonBox.Ok).setEnabled(s.is_valid)
        self.btn_add.setEnabled(len(self._splits) < MAX_SPLITS)
        self.btn_del.setEnabled(len(self._splits) > MIN_SPLITS)

    # -------- Result --------
    def get_splits(self) -> List[Split]:
        return [sp.model_copy() for sp in self._splits]
