"""
Authority call logging utility.
Logs operation, endpoint, masked request payload, status code and errors.
Token, Sign and certificate material never reach a log line.
"""

import logging

from einvoice.utils import safe_json_dumps

logger = logging.getLogger("einvoice")


def log_authority_call(
    endpoint: str,
    operation: str,
    request_payload: dict | None = None,
    response=None,
    error: str | Exception | None = None,
) -> None:
    """
    Log an Authority web service call.

    Args:
        endpoint: Service URL.
        operation: SOAP operation (e.g. "FECAESolicitar", "loginCms").
        request_payload: Request body as dict, or None.
        response: requests.Response, or None when the call failed before a reply.
        error: Error message string or Exception to log.
    """
    status_code = getattr(response, "status_code", None) if response is not None else None
    extra = {
        "operation": operation,
        "endpoint": endpoint,
        "status_code": status_code,
    }
    if request_payload is not None:
        body = request_payload.get("FeCAEReq") or request_payload
        header = body.get("FeCabReq") or {}
        detail = (body.get("FeDetReq") or {}).get("FECAEDetRequest") or {}
        extra["sales_point"] = header.get("PtoVta")
        extra["document_type"] = header.get("CbteTipo")
        extra["sequence_number"] = detail.get("CbteDesde")

    if error is not None:
        logger.warning(
            "Authority call %s -> error: %s | request=%s",
            operation,
            error,
            safe_json_dumps(request_payload or {}),
            extra=extra,
        )
        return

    logger.info(
        "Authority call %s -> %s | request=%s",
        operation,
        status_code if status_code is not None else "unknown",
        safe_json_dumps(request_payload or {}),
        extra=extra,
    )
