from __future__ import annotations
import logging
from typing import List

from erd_studio.errors import Diagnostic
from erd_studio.model import Schema

logger = logging.getLogger(__name__)


def find_unresolved(schema: Schema) -> List[Diagnostic]:
    return [
        Diagnostic("warning", f"Unresolved reference {r}: endpoint table/column not found")
        for r in schema.unresolved_references()
    ]


def normalize_schema(schema: Schema) -> List[Diagnostic]:
    """
    에디터에 넘기기 전 정리: 살아있는 테이블/컬럼을 가리키지 않는 Ref는 제거한다.
    제거한 Ref마다 경고를 남기고 목록으로 돌려준다.
    """
    dropped = find_unresolved(schema)
    if dropped:
        schema.references = schema.resolved_references()
        for d in dropped:
            logger.warning(d.message)
    return dropped
