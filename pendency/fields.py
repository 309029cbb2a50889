"""Field resolution for loosely-keyed spreadsheet rows.

The remote spreadsheet is edited by hand: columns get renamed, re-cased,
accented or abbreviated between fetches. Every canonical field therefore has
an ordered list of accepted column names, and lookups go through a
case/accent/punctuation-insensitive comparison. The alias tables below are
the only place that needs touching when the sheet changes.
"""

import re
import unicodedata
from typing import Any, Dict, List, Mapping, Optional

_NON_ALNUM = re.compile(r"[^a-z0-9]")

RECORD_KEYS: Dict[str, List[str]] = {
    "document_number": [
        "CTE", "cteNumber", "documentNumber", "cte", "numero", "Numero",
        "Conhecimento", "CT-e", "n_cte", "cte_numero", "numero_cte",
    ],
    "series": ["SERIE", "serie", "Serie", "series", "ser"],
    "emission_date": [
        "DATA EMISSAO", "emissionDate", "emissao", "data_emissao",
        "Data Emissão", "Dt Emissao", "data", "emission",
    ],
    "deadline_date": [
        "PRAZO PARA BAIXA (DIAS)", "deadlineDate", "prazo", "data_prazo",
        "Prazo", "Previsão", "Previsao", "previsao_entrega", "deadline",
    ],
    "limit_date": [
        "DATA LIMITE DE BAIXA", "limitDate", "limite", "data_limite",
        "Data Limite", "Vencimento", "dt_limite", "limit",
    ],
    "status": ["STATUS", "status", "Situacao", "Situação", "estado", "st"],
    "collection_unit": [
        "COLETA", "collectionUnit", "origem", "collection_unit",
        "Unidade Origem", "Filial Origem", "U. Origem", "col",
    ],
    "delivery_unit": [
        "ENTREGA", "deliveryUnit", "destino", "delivery_unit",
        "Unidade Destino", "Filial Destino", "U. Destino", "ent",
    ],
    "value": [
        "VALOR DO CTE", "value", "Valor", "amount", "Vlr", "Valor Frete",
        "Vlr. Frete", "Valor Total", "Vlr Total", "Total Frete", "total",
        "montante",
    ],
    "freight_paid": [
        "freightPaid", "pago", "Status Pagamento", "quitado",
        "pagamento_realizado",
    ],
    "recipient": [
        "DESTINATARIO", "recipient", "Destinatário", "cliente", "Recebedor",
        "nome_destinatario", "nome_cliente",
    ],
    "justification": [
        "JUSTIFICATIVA", "justification", "Obs", "Observacao", "comentario",
        "notas",
    ],
    "payment_type": [
        "FRETE_PAGO", "type", "tipo", "paymentType", "Tipo Frete",
        "Tipo Pagamento", "Pagamento", "pagto", "Condição", "Condição Pagamento",
        "tp_frete", "cond_pagamento", "forma_pagamento", "modalidade",
        "modalidade_frete",
    ],
    "has_notes": ["hasNotes", "notas_sistema", "Tem Nota", "possui_nota"],
    "notes_count": ["notesCount", "qtd_notas", "quantidade_notas"],
    "is_search": ["isSearch", "EM_BUSCA", "em_busca", "busca", "searching"],
}

USER_KEYS: Dict[str, List[str]] = {
    "id": ["id", "ID", "username", "usuario"],
    "username": ["username", "usuario", "user", "Login"],
    "role": ["role", "perfil", "cargo", "access_level"],
    "name": ["name", "nome", "Full Name"],
    "linked_origin_unit": [
        "linkedOriginUnit", "unidade_origem", "origem_vinculada", "Filial Origem",
    ],
    "linked_dest_unit": [
        "linkedDestUnit", "unidade_destino", "destino_vinculado", "Filial Destino",
    ],
}

NOTE_KEYS: Dict[str, List[str]] = {
    "id": ["id", "ID"],
    "record_id": ["cteId", "recordId", "cte", "CTE"],
    "date": ["date", "data"],
    "author": ["author", "usuario", "User"],
    "text": ["text", "texto", "Conteudo"],
    "image_url": ["imageUrl", "link_imagem", "imagem", "url"],
    "attachments": ["attachments", "anexos", "arquivos"],
    "is_search_process": ["isSearchProcess", "em_busca", "markInSearch"],
}

CONFIG_KEYS: Dict[str, List[str]] = {
    "critical_days_limit": ["PRAZO_LIMITE", "criticalDaysLimit", "prazo_limite"],
    "upload_folder_url": ["URL_DRIVE_UPLOAD", "uploadFolderUrl", "url_upload"],
}


def clean_key(key: Any) -> str:
    """Reduce a column name to lower-case ASCII alphanumerics.

    "Data Emissão" and "data_emissao" both become "dataemissao".
    """
    decomposed = unicodedata.normalize("NFD", str(key).lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _NON_ALNUM.sub("", stripped)


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def get_prop(raw: Optional[Mapping[str, Any]], aliases: List[str]) -> Any:
    """Resolve a canonical field from a raw row.

    Args:
        raw: Raw row (arbitrary keys)
        aliases: Accepted column names, in priority order

    Returns:
        The first non-empty value whose key matches an alias, or None
    """
    if not raw:
        return None

    cleaned = {key: clean_key(key) for key in raw.keys()}
    for alias in aliases:
        alias_lower = alias.lower()
        alias_clean = clean_key(alias)
        for key, key_clean in cleaned.items():
            if str(key).lower() != alias_lower and key_clean != alias_clean:
                continue
            value = raw[key]
            if not _is_empty(value):
                return value
    return None


def get_string(raw: Optional[Mapping[str, Any]], aliases: List[str], default: str = "") -> str:
    """Resolve a field as a stripped string."""
    value = get_prop(raw, aliases)
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def get_trimmed_string(
    raw: Optional[Mapping[str, Any]], aliases: List[str]
) -> Optional[str]:
    """Resolve a field as a stripped string, None when blank."""
    value = get_prop(raw, aliases)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def get_flag(raw: Optional[Mapping[str, Any]], aliases: List[str]) -> bool:
    """Resolve a truthy spreadsheet cell ("sim", "true", "x", 1...)."""
    value = get_prop(raw, aliases)
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    text = clean_key(value)
    return text not in ("", "0", "false", "nao", "no", "n", "f")
