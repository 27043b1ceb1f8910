from __future__ import annotations


class FacturierError(Exception):
    """Erreur de base de l'application."""


class ValidationError(FacturierError, ValueError):
    """Données refusées (répartition incohérente, champ obligatoire manquant…).

    Le message est destiné à être affiché tel quel à l'utilisateur.
    """


class NotFoundError(FacturierError, LookupError):
    def __init__(self, entity: str, obj_id: str) -> None:
        super().__init__(f"{entity} {obj_id} introuvable")
        self.entity = entity
        self.obj_id = obj_id


class RenderError(FacturierError, RuntimeError):
    """Échec de génération du document imprimable."""
