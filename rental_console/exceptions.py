from typing import Optional


class ConsoleError(Exception):
    pass


class ApiError(ConsoleError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class InvalidSelectionError(ConsoleError):
    pass
