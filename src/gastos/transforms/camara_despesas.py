"""Flatten function for Chamber deputy CEAP expense records.

  - Values are already floats (not Brazilian-locale strings).
  - codDocumento is the natural dedup key together with the deputy id.
  - deputado_id must be injected by the caller (not present in the record).

Unparseable scalars become None; a record missing its document id, year or
month is rejected by the store's NOT NULL constraints.
"""

from ..models import Expense
from ._coerce import to_float, to_int, to_str


def flatten_despesa_deputado(deputado_id: int, rec: dict) -> Expense:
    """Flatten one expense record from GET /deputados/{id}/despesas."""
    return Expense(
        deputy_id=deputado_id,
        document_id=to_int(rec.get("codDocumento")),
        year=to_int(rec.get("ano")),
        month=to_int(rec.get("mes")),
        expense_type=to_str(rec.get("tipoDespesa")),
        document_type=to_str(rec.get("tipoDocumento")),
        document_date=to_str(rec.get("dataDocumento")),
        document_number=to_str(rec.get("numDocumento")),
        document_value=to_float(rec.get("valorDocumento")),
        document_url=to_str(rec.get("urlDocumento")),
        supplier_name=to_str(rec.get("nomeFornecedor")),
        supplier_id=to_str(rec.get("cnpjCpfFornecedor")),
        net_value=to_float(rec.get("valorLiquido")),
        gloss_value=to_float(rec.get("valorGlosa")),
        refund_number=to_str(rec.get("numRessarcimento")),
        batch_code=to_int(rec.get("codLote")),
        installment=to_int(rec.get("parcela")),
    )
