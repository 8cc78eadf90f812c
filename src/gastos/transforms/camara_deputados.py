"""Flatten functions for Chamber deputy listings and mandate history.

  1. flatten_deputado()  — from GET /deputados?idLegislatura={n}
                           one Deputy per listing row
  2. flatten_historico() — from GET /deputados/{id}/historico
                           one DeputyMandateInfo per status entry

The history endpoint returns one entry per status change, several of them
within the same legislature; the store keeps the last one seen for each
(deputy, legislature).
"""

from ..models import Deputy, DeputyMandateInfo
from ._coerce import to_int, to_str


def flatten_deputado(rec: dict, legislatura_id: int) -> Deputy:
    """Flatten one record from GET /deputados?idLegislatura={n}."""
    return Deputy(
        id=int(rec["id"]),
        name=to_str(rec.get("nome")),
        party=to_str(rec.get("siglaPartido")),
        state=to_str(rec.get("siglaUf")),
        legislature=to_int(rec.get("idLegislatura")) or legislatura_id,
        photo_url=to_str(rec.get("urlFoto")),
        email=to_str(rec.get("email")),
    )


def flatten_historico(rec: dict) -> DeputyMandateInfo:
    """Flatten one record from GET /deputados/{id}/historico.

    ``condicaoEleitoral`` carries the mandate title ("Titular", "Suplente").
    """
    return DeputyMandateInfo(
        deputy_id=int(rec["id"]),
        legislature=int(rec["idLegislatura"]),
        party=to_str(rec.get("siglaPartido")),
        state=to_str(rec.get("siglaUf")),
        title=to_str(rec.get("condicaoEleitoral")),
    )
