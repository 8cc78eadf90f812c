"""
Flatten functions for Chamber and company-registry payloads.

Re-exports every public function so callers can import from the package:

    from gastos.transforms import flatten_deputado, flatten_despesa_deputado

Each submodule covers one upstream endpoint family and contains only pure
dict-in / record-out transformation functions — no I/O, no API calls.
"""

from .camara_deputados import flatten_deputado, flatten_historico
from .camara_despesas import flatten_despesa_deputado
from .fornecedores import flatten_empresa, format_address, format_cep

__all__ = [
    "flatten_deputado",
    "flatten_historico",
    "flatten_despesa_deputado",
    "flatten_empresa",
    "format_address",
    "format_cep",
]
