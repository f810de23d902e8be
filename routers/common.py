"""Result -> HTTP response mapping shared by the routers."""
from fastapi.responses import JSONResponse

from skelseq.results import ErrorCode, Result

_STATUS_BY_CODE = {
	ErrorCode.VALIDATION_ERROR: 400,
	ErrorCode.UNKNOWN_OPERATION: 404,
}


def result_response(result: Result) -> JSONResponse:
	"""200 on success; 400 for bad input, 404 for unknown operations, else 500."""
	status = 200 if result.success else _STATUS_BY_CODE.get(result.code or "", 500)
	return JSONResponse(content=result.to_dict(), status_code=status)
