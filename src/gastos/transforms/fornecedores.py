"""Flatten functions for BrasilAPI CNPJ lookups (GET /api/cnpj/v1/{cnpj}).

Only four fields are kept per company: legal name, founding date, primary
activity (CNAE description) and one formatted address line.
"""

import re

from ..models import Supplier
from ._coerce import to_str

_CEP = re.compile(r"^(\d{5})(\d{3})$")

# Address components in display order
_ADDRESS_FIELDS = (
    "descricao_tipo_de_logradouro",
    "logradouro",
    "numero",
    "complemento",
    "bairro",
    "municipio",
    "uf",
)


def format_cep(cep) -> str | None:
    """``"01310100"`` → ``"01310-100"``; anything else is returned stripped."""
    text = to_str(cep)
    if text is None:
        return None
    return _CEP.sub(r"\1-\2", text)


def format_address(rec: dict) -> str | None:
    """Join the non-blank address components with ", ".

        format_address({"logradouro": "PAULISTA", "numero": "1000",
                        "complemento": "  ", "cep": "01310100"})
        # → "PAULISTA, 1000, 01310-100"
    """
    parts = [to_str(rec.get(field)) for field in _ADDRESS_FIELDS]
    parts.append(format_cep(rec.get("cep")))
    joined = ", ".join(p for p in parts if p)
    return joined or None


def flatten_empresa(cnpj: str, rec) -> Supplier | None:
    """Flatten one BrasilAPI company payload.

    Returns None when the payload cannot be interpreted, so the caller can
    store a bare row instead.
    """
    if not isinstance(rec, dict) or not rec:
        return None
    return Supplier(
        cnpj=cnpj,
        name=to_str(rec.get("razao_social")),
        founding_date=to_str(rec.get("data_inicio_atividade")),
        main_activity=to_str(rec.get("cnae_fiscal_descricao")),
        address=format_address(rec),
    )
