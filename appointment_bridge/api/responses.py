from http import HTTPStatus

from fastapi.responses import JSONResponse

from appointment_bridge.schemas.sync import SyncErrorType, SyncResult

ERROR_STATUS: dict[SyncErrorType, HTTPStatus] = {
    SyncErrorType.CONFIGURATION: HTTPStatus.BAD_REQUEST,
    SyncErrorType.UPSTREAM: HTTPStatus.BAD_GATEWAY,
    SyncErrorType.AVAILABILITY_CONFLICT: HTTPStatus.CONFLICT,
    SyncErrorType.DATA_INTEGRITY: HTTPStatus.INTERNAL_SERVER_ERROR,
    SyncErrorType.VALIDATION: HTTPStatus.UNPROCESSABLE_ENTITY,
    SyncErrorType.TIMEOUT: HTTPStatus.GATEWAY_TIMEOUT,
    SyncErrorType.NOT_FOUND: HTTPStatus.NOT_FOUND,
}


def sync_result_response(result: SyncResult) -> SyncResult | JSONResponse:
    """
    Successful results pass through; failures keep the SyncResult body but
    carry the HTTP status matching their `error_type`.
    """
    if result.success:
        return result

    status = ERROR_STATUS.get(result.error_type, HTTPStatus.INTERNAL_SERVER_ERROR)
    return JSONResponse(status_code=status, content=result.model_dump(mode="json"))
