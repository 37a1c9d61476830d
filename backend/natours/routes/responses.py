"""Response envelopes shared by the API route groups."""

from typing import Any, Dict, List, Optional

from fastapi import Response, status
from fastapi.responses import JSONResponse

from natours.context import RequestContext


def list_response(documents: List[Dict[str, Any]], context: RequestContext) -> Dict[str, Any]:
    return {
        "status": "success",
        "requestedAt": context.request_time,
        "results": len(documents),
        "data": {"data": documents},
    }


def document_response(document: Any, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": "success", "data": {"data": document}},
    )


def deleted_response() -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def data_response(data: Dict[str, Any], extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"status": "success", "data": data}
    if extra:
        body.update(extra)
    return body
