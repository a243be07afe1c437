# backoffice/http_problem_handlers.py
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from backoffice.api.problem import make_problem, problem_from_error
from backoffice.services.errors import InventoryError
from backoffice.services.events import jsonable

logger = logging.getLogger("backoffice.http")


def _new_trace_id() -> str:
    return f"t_{uuid.uuid4().hex[:12]}"


def _req_ctx(req: Request) -> Dict[str, Any]:
    return {"path": getattr(req.url, "path", ""), "method": req.method}


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(InventoryError)
    async def _inventory_exc(req: Request, exc: InventoryError):
        trace_id = _new_trace_id()
        if exc.http_status >= 500:
            logger.error("%s[%s]: %s", exc.code, trace_id, exc.message)
        content = problem_from_error(exc, request_context=_req_ctx(req), trace_id=trace_id)
        return JSONResponse(status_code=exc.http_status, content=jsonable(content))

    @app.exception_handler(RequestValidationError)
    async def _validation_exc(req: Request, exc: RequestValidationError):
        details: List[Dict[str, Any]] = []
        for i, e in enumerate(exc.errors()):
            if not isinstance(e, dict):
                continue
            details.append(
                {
                    "type": str(e.get("type") or "validation"),
                    "path": ".".join(str(p) for p in e.get("loc", ())) or f"validation[{i}]",
                    "reason": str(e.get("msg") or e.get("type") or "invalid"),
                }
            )
        content = make_problem(
            status_code=422,
            error_code="request_validation_error",
            message="请求参数不合法",
            context=_req_ctx(req),
            details=details,
            trace_id=_new_trace_id(),
        )
        return JSONResponse(status_code=422, content=content)

    @app.exception_handler(HTTPException)
    async def _http_exc(req: Request, exc: HTTPException):
        d = exc.detail
        content = make_problem(
            status_code=int(exc.status_code),
            error_code="http_error",
            message=str(d) if d is not None else "请求被拒绝",
            context=_req_ctx(req),
            trace_id=_new_trace_id(),
        )
        return JSONResponse(status_code=int(exc.status_code), content=content)

    @app.exception_handler(Exception)
    async def _unhandled_exc(req: Request, exc: Exception):
        trace_id = _new_trace_id()
        logger.exception("UNHANDLED_EXC[%s]: %s", trace_id, exc)
        content = make_problem(
            status_code=500,
            error_code="internal_error",
            message="系统异常，请稍后重试",
            context=_req_ctx(req),
            trace_id=trace_id,
        )
        return JSONResponse(status_code=500, content=content)

