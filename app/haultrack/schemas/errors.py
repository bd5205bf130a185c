from pydantic import BaseModel


class ApiErrorResponse(BaseModel):
    code: str
    message: str
    details: dict | None = None
    trace_id: str | None = None


class ApiValidationErrorItem(BaseModel):
    field: str | None = None
    message: str
    type: str
    loc: list[str | int] | None = None


class ApiValidationErrorDetails(BaseModel):
    errors: list[ApiValidationErrorItem]


class ApiValidationErrorResponse(ApiErrorResponse):
    details: ApiValidationErrorDetails | dict | None = None


ERROR_RESPONSES = {
    401: {"model": ApiErrorResponse, "description": "Missing or invalid bearer token"},
    403: {"model": ApiErrorResponse, "description": "Role or assignee check failed"},
    404: {"model": ApiErrorResponse, "description": "Unknown task, container or QR code"},
    409: {"model": ApiErrorResponse, "description": "Rejected by the task status graph or capacity rules"},
    422: {"model": ApiValidationErrorResponse, "description": "Invalid request payload"},
}
