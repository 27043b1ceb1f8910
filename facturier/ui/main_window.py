from __future__ import annotations
import logging
import sys
from PySide6.QtWidgets import (
    QApplication, QMainWindow, QWidget, QTabWidget, QVBoxLayout, QHBoxLayout,
    QLabel, QPushButton, QMessageBox, QTableWidget, QTableWidgetItem,
    QHeaderView, QDialog, QFormLayout, QLineEdit, QTextEdit, QFileDialog
)

from facturier import settings as app_settings
from facturier.errors import FacturierError
from facturier.models.invoice import SubInvoice
from facturier.services.calculator import format_currency
from facturier.services.dashboard import dashboard_summary
from facturier.services.pdf_service import PdfService
from facturier.services.workspace import Workspace
from facturier.ui.widgets.client_form import ClientForm
from facturier.ui.widgets.document_editor import DocumentEditor
from facturier.ui.widgets.split_dialog import SplitDialog

logger = logging.getLogger(__name__)

TYPE_LABELS = {"invoice": "Facture", "quote": "Devis", "proforma": "Proforma"}


class MainWindow(QMainWindow):
    def __init__(self, workspace: Workspace | None = None):
        super().__init__()
        self.setWindowTitle("Facturier - Devis & Factures")
        self.resize(1280, 800)
        self.ws = workspace or Workspace.open()
        self.pdf_service = PdfService(self.ws.settings)

        self.tabs = QTabWidget()
        self.setCentralWidget(self.tabs)

        self.tabs.addTab(self._documents_tab(), "Documents")
        self.tabs.addTab(self._clients_tab(), "Clients")
        self.tabs.addTab(self._company_tab(), "Entreprise")

    def _guard(self, action, *args):
        """Affiche les erreurs métier au lieu de les laisser remonter dans la boucle Qt."""
        try:
            return action(*args)
        except FacturierError as e:
            QMessageBox.warning(self, "Erreur", str(e))
            return None

    # ==================== DOCUMENTS ====================
    def _documents_tab(self):
        w = QWidget()
        root = QVBoxLayout(w)

        stats = QHBoxLayout()
        self.lab_invoices = QLabel(); self.lab_quotes = QLabel(); self.lab_revenue = QLabel()
        for lab in (self.lab_invoices, self.lab_quotes, self.lab_revenue):
            stats.addWidget(lab)
        stats.addStretch(1)
        root.addLayout(stats)

        bar = QHBoxLayout()
        btn_new = QPushButton("Nouveau document")
        btn_edit = QPushButton("Modifier")
        btn_del = QPushButton("Supprimer")
        btn_paid = QPushButton("Payé / non payé")
        btn_cancel = QPushButton("Annuler / réactiver")
        btn_split = QPushButton("Diviser la facture")
        btn_pdf = QPushButton("Exporter PDF")
        for b in (btn_new, btn_edit, btn_del, btn_paid, btn_cancel, btn_split):
            bar.addWidget(b)
        bar.addStretch(1); bar.addWidget(btn_pdf)
        root.addLayout(bar)

        self.tbl_docs = QTableWidget(0, 7)
        self.tbl_docs.setHorizontalHeaderLabels(["Type", "Numéro", "Client", "Date", "Total TTC", "Statut", "ID"])
        self.tbl_docs.horizontalHeader().setSectionResizeMode(QHeaderView.Stretch)
        self.tbl_docs.setSelectionBehavior(self.tbl_docs.SelectionBehavior.SelectRows)
        self.tbl_docs.setEditTriggers(self.tbl_docs.EditTrigger.NoEditTriggers)
        root.addWidget(self.tbl_docs, 1)

        btn_new.clicked.connect(self._doc_new)
        btn_edit.clicked.connect(self._doc_edit)
        btn_del.clicked.connect(self._doc_delete)
        btn_paid.clicked.connect(lambda: self._doc_toggle(self.ws.invoices.toggle_paid_status))
        btn_cancel.clicked.connect(lambda: self._doc_toggle(self.ws.invoices.toggle_cancelled_status))
        btn_split.clicked.connect(self._doc_split)
        btn_pdf.clicked.connect(self._doc_pdf)

        self._refresh_documents()
        return w

    def _refresh_documents(self):
        self.tbl_docs.setRowCount(0)
        # factures récentes d'abord, chaque mère suivie de ses sous-factures
        for inv in reversed(self.ws.invoices.list_invoices()):
            for doc in [inv, *self.ws.invoices.sub_invoices_of(inv.id)]:
                r = self.tbl_docs.rowCount(); self.tbl_docs.insertRow(r)
                label = TYPE_LABELS.get(doc.document_type, doc.document_type)
                if isinstance(doc, SubInvoice):
                    label = f"   ↳ Sous-facture ({doc.split_percentage:.2f} %)"
                self.tbl_docs.setItem(r, 0, QTableWidgetItem(label))
                self.tbl_docs.setItem(r, 1, QTableWidgetItem(doc.number))
                self.tbl_docs.setItem(r, 2, QTableWidgetItem(doc.client.name if doc.client else ""))
                self.tbl_docs.setItem(r, 3, QTableWidgetItem(doc.date.strftime("%d/%m/%Y")))
                self.tbl_docs.setItem(r, 4, QTableWidgetItem(format_currency(doc.total_ttc)))
                self.tbl_docs.setItem(r, 5, QTableWidgetItem(doc.status))
                self.tbl_docs.setItem(r, 6, QTableWidgetItem(doc.id))
        self.tbl_docs.resizeRowsToContents()

        s = dashboard_summary(self.ws.invoices)
        self.lab_invoices.setText(f"Factures payées / en attente : {s.paid_invoices} / {s.pending_invoices}")
        self.lab_quotes.setText(f"Devis : {s.quotes}")
        self.lab_revenue.setText(f"Chiffre d'affaires : {format_currency(s.revenue)}")

    def _selected_doc(self):
        row = self.tbl_docs.currentRow()
        if row < 0:
            QMessageBox.information(self, "Documents", "Sélectionne une ligne d’abord.")
            return None
        return self.ws.invoices.get_by_id(self.tbl_docs.item(row, 6).text())

    def _doc_new(self):
        dlg = DocumentEditor(self, documents=self.ws.documents)
        if dlg.exec() == QDialog.Accepted:
            if self._guard(self.ws.documents.save_document, dlg.get_document()) is not None:
                self._refresh_documents()

    def _doc_edit(self):
        doc = self._selected_doc()
        if not doc:
            return
        dlg = DocumentEditor(self, documents=self.ws.documents, invoice=doc)
        if dlg.exec() == QDialog.Accepted:
            if self._guard(self.ws.documents.save_document, dlg.get_document(), doc.id) is not None:
                self._refresh_documents()

    def _doc_delete(self):
        doc = self._selected_doc()
        if not doc:
            return
        if isinstance(doc, SubInvoice):
            QMessageBox.information(self, "Documents", "Une sous-facture se supprime avec sa facture mère.")
            return
        if QMessageBox.question(self, "Suppression", f"Supprimer le document {doc.number} ?") == QMessageBox.Yes:
            self.ws.invoices.delete_invoice(doc.id)
            self._refresh_documents()

    def _doc_toggle(self, toggle):
        doc = self._selected_doc()
        if not doc:
            return
        self._guard(toggle, doc.id)
        self._refresh_documents()

    def _doc_split(self):
        doc = self._selected_doc()
        if not doc:
            return
        if isinstance(doc, SubInvoice) or doc.document_type != "invoice":
            QMessageBox.information(self, "Division", "Seule une facture peut être divisée.")
            return
        dlg = SplitDialog(self, invoice=doc)
        if dlg.exec() == QDialog.Accepted:
            ids = self._guard(self.ws.splitter.split_invoice, doc.id, dlg.get_splits())
            if ids:
                QMessageBox.information(self, "Division", f"Facture divisée en {len(ids)} sous-factures")
            self._refresh_documents()

    def _doc_pdf(self):
        doc = self._selected_doc()
        if not doc:
            return
        out_dir = QFileDialog.getExistingDirectory(self, "Dossier d'export")
        if not out_dir:
            return
        path = self._guard(self.pdf_service.export_pdf, doc, out_dir)
        if path:
            QMessageBox.information(self, "PDF", f"PDF généré : {path}")

    # ==================== CLIENTS ====================
    def _clients_tab(self):
        w = QWidget()
        root = QVBoxLayout(w)
        bar = QHBoxLayout()
        btn_new = QPushButton("Nouveau")
        btn_edit = QPushButton("Modifier")
        btn_del = QPushButton("Supprimer")
        bar.addWidget(btn_new); bar.addWidget(btn_edit); bar.addWidget(btn_del)
        bar.addStretch(1)
        root.addLayout(bar)

        self.tbl_clients = QTableWidget(0, 5)
        self.tbl_clients.setHorizontalHeaderLabels(["Nom", "Email", "Téléphone", "SIRET", "ID"])
        self.tbl_clients.horizontalHeader().setSectionResizeMode(QHeaderView.Stretch)
        self.tbl_clients.setSelectionBehavior(self.tbl_clients.SelectionBehavior.SelectRows)
        self.tbl_clients.setEditTriggers(self.tbl_clients.EditTrigger.NoEditTriggers)
        root.addWidget(self.tbl_clients, 1)

        btn_new.clicked.connect(self._client_new)
        btn_edit.clicked.connect(self._client_edit)
        btn_del.clicked.connect(self._client_delete)

        self._refresh_clients()
        return w

    def _refresh_clients(self):
        self.tbl_clients.setRowCount(0)
        for c in self.ws.clients.list_clients():
            r = self.tbl_clients.rowCount(); self.tbl_clients.insertRow(r)
            self.tbl_clients.setItem(r, 0, QTableWidgetItem(c.name or ""))
            self.tbl_clients.setItem(r, 1, QTableWidgetItem(c.email or ""))
            self.tbl_clients.setItem(r, 2, QTableWidgetItem(c.phone or ""))
            self.tbl_clients.setItem(r, 3, QTableWidgetItem(c.siret or ""))
            self.tbl_clients.setItem(r, 4, QTableWidgetItem(c.id))
        self.tbl_clients.resizeRowsToContents()

    def _selected_client_id(self):
        row = self.tbl_clients.currentRow()
        if row < 0: return None
        return self.tbl_clients.item(row, 4).text()

    def _client_new(self):
        dlg = ClientForm(self)
        if dlg.exec() == QDialog.Accepted:
            fields = dlg.get_fields()
            if not fields:
                QMessageBox.warning(self, "Validation", "Le nom et l'email du client sont obligatoires.")
                return
            self._guard(self.ws.clients.add_client, fields)
            self._refresh_clients()

    def _client_edit(self):
        cid = self._selected_client_id()
        if not cid:
            QMessageBox.information(self, "Clients", "Sélectionne une ligne d’abord.")
            return
        current = self.ws.clients.get_by_id(cid)
        if not current:
            QMessageBox.warning(self, "Clients", "Impossible de charger ce client.")
            return
        dlg = ClientForm(self, client=current)
        if dlg.exec() == QDialog.Accepted:
            fields = dlg.get_fields()
            if not fields:
                QMessageBox.warning(self, "Validation", "Le nom et l'email du client sont obligatoires.")
                return
            self._guard(self.ws.clients.update_client, cid, fields)
            self._refresh_clients()

    def _client_delete(self):
        cid = self._selected_client_id()
        if not cid:
            QMessageBox.information(self, "Clients", "Sélectionne une ligne d’abord.")
            return
        if QMessageBox.question(self, "Suppression", "Supprimer ce client ?") == QMessageBox.Yes:
            self.ws.clients.delete_client(cid)
            self._refresh_clients()

    # ==================== ENTREPRISE ====================
    def _company_tab(self):
        w = QWidget()
        root = QVBoxLayout(w)
        company = self.ws.clients.company
        self.ed_company = {
            "name": QLineEdit(company.name),
            "email": QLineEdit(company.email),
            "phone": QLineEdit(company.phone),
            "siret": QLineEdit(company.siret or ""),
            "vat_number": QLineEdit(company.vat_number or ""),
        }
        self.ed_company_address = QTextEdit(); self.ed_company_address.setPlainText(company.address)

        form = QFormLayout()
        form.addRow("Nom de l'entreprise", self.ed_company["name"])
        form.addRow("Email", self.ed_company["email"])
        form.addRow("Téléphone", self.ed_company["phone"])
        form.addRow("Adresse", self.ed_company_address)
        form.addRow("SIRET", self.ed_company["siret"])
        form.addRow("N° TVA", self.ed_company["vat_number"])
        root.addLayout(form)

        btn_save = QPushButton("Enregistrer")
        btn_save.clicked.connect(self._company_save)
        root.addWidget(btn_save)
        root.addStretch(1)
        return w

    def _company_save(self):
        fields = {k: ed.text().strip() for k, ed in self.ed_company.items()}
        fields["address"] = self.ed_company_address.toPlainText().strip()
        self.ws.clients.update_company(fields)
        QMessageBox.information(self, "Entreprise", "Informations de l'entreprise mises à jour")


def main() -> int:
    app_settings.configure_logging()
    app = QApplication(sys.argv)
    win = MainWindow()
    win.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
