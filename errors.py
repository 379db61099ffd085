from fastapi import HTTPException


class InvalidRequest(HTTPException):
    def __init__(self, detail: str = "Invalid request"):
        super().__init__(status_code=400, detail=detail)


class AuthMissing(HTTPException):
    def __init__(self, detail: str = "Missing Authorization header"):
        super().__init__(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


class AuthInvalid(HTTPException):
    def __init__(self, detail: str = "Invalid or expired token"):
        super().__init__(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(HTTPException):
    def __init__(self, detail: str = "Admin only"):
        super().__init__(status_code=403, detail=detail)


class NotFound(HTTPException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=404, detail=detail)


# Duplicate email. The storefront clients expect 400 here rather than 409.
class Conflict(HTTPException):
    def __init__(self, detail: str = "Email already registered"):
        super().__init__(status_code=400, detail=detail)


class Internal(HTTPException):
    def __init__(self, detail: str = "Internal error"):
        super().__init__(status_code=500, detail=detail)
