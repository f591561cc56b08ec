"""HTTP error taxonomy shared by the routes and the authentication guard."""

from fastapi import HTTPException, status


class BadRequest(HTTPException):
    def __init__(self, detail: str = 'Bad request.') -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class Unauthorized(HTTPException):
    def __init__(self, detail: str = 'Authorization token required.') -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={'WWW-Authenticate': 'Bearer'},
        )


class Forbidden(HTTPException):
    def __init__(self, detail: str = 'Forbidden.') -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class NotFound(HTTPException):
    def __init__(self, detail: str = 'Not found.') -> None:
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class Internal(HTTPException):
    def __init__(self, detail: str = 'An unexpected server error occurred.') -> None:
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
