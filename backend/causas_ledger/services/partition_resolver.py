"""
Partition resolution.

Callers name a partition in several ways: the canonical table name
(``CausasCivil``), the fuero code (``CIV``), the PJN numeric code (``1``) or a
plain jurisdiction name (``civil``, ``laboral``, ``social security``...). All of
them collapse to one ``Partition`` member here, before anything touches the
database.
"""
from __future__ import annotations

import re
import unicodedata
from typing import Any, Optional, Type

from causas_ledger.db.models import PARTITION_MODELS, CaseRecordMixin, Partition
from causas_ledger.utils.exceptions import InvalidPartitionError

# PJN jurisdiction codes as used by the scraper's court selector.
PJN_CODES = {
    "1": Partition.civil,
    "5": Partition.seg_social,
    "7": Partition.trabajo,
    "10": Partition.comercial,
}

_ALIASES = {
    # canonical partition names
    "causascivil": Partition.civil,
    "causastrabajo": Partition.trabajo,
    "causassegsocial": Partition.seg_social,
    "causassegsoc": Partition.seg_social,
    "causascomercial": Partition.comercial,
    # fuero codes
    "civ": Partition.civil,
    "cnt": Partition.trabajo,
    "css": Partition.seg_social,
    "com": Partition.comercial,
    # jurisdiction names
    "civil": Partition.civil,
    "trabajo": Partition.trabajo,
    "laboral": Partition.trabajo,
    "labor": Partition.trabajo,
    "segsocial": Partition.seg_social,
    "seguridadsocial": Partition.seg_social,
    "socialsecurity": Partition.seg_social,
    "comercial": Partition.comercial,
    "commercial": Partition.comercial,
}


def _fold(token: str) -> str:
    text = unicodedata.normalize("NFKD", token)
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return re.sub(r"[\s_.\-]+", "", text).lower()


def resolve_partition(token: Any) -> Partition:
    """Map any accepted spelling to its Partition, or raise InvalidPartitionError."""
    if isinstance(token, Partition):
        return token
    if not isinstance(token, (str, int)) or isinstance(token, bool):
        raise InvalidPartitionError(token)

    text = str(token).strip()
    if text in PJN_CODES:
        return PJN_CODES[text]

    partition = _ALIASES.get(_fold(text))
    if partition is None:
        raise InvalidPartitionError(token)
    return partition


def partition_for_pjn_code(code: Any) -> Optional[Partition]:
    """Partition for a PJN jurisdiction code, None when the code is not tracked"""
    return PJN_CODES.get(str(code).strip())


def model_for(partition: Partition) -> Type[CaseRecordMixin]:
    return PARTITION_MODELS[partition]
