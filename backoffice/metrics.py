# backoffice/metrics.py
from __future__ import annotations

import os

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, CollectorRegistry, Counter, generate_latest, multiprocess

LEDGER_MUTATIONS = Counter(
    "inventory_ledger_mutations_total", "Committed ledger mutations", ["movement_type"]
)
LEDGER_REJECTIONS = Counter(
    "inventory_ledger_rejections_total", "Rejected ledger mutations", ["reason"]
)
WORKFLOW_TRANSITIONS = Counter(
    "inventory_workflow_transitions_total", "Workflow status transitions", ["document_type", "status"]
)

router = APIRouter()


@router.get("/metrics")
def metrics() -> Response:
    """
    单进程直接导出默认 REGISTRY；
    多进程（设置了 PROMETHEUS_MULTIPROC_DIR）时合并各分片。
    """
    if os.environ.get("PROMETHEUS_MULTIPROC_DIR"):
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        payload = generate_latest(registry)
    else:
        payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)
