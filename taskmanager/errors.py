"""
Domain errors.

Each error carries the HTTP status it maps to and the message shown to the
client, so the API layer can render all of them with one handler.
"""


class TaskManagerError(Exception):
    status_code = 400
    default_message = "Bad request"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(TaskManagerError):
    status_code = 400
    default_message = "Invalid request"


class UsernameTakenError(TaskManagerError):
    status_code = 400
    default_message = "Error: Username is already taken!"


class InvalidCredentialsError(TaskManagerError):
    status_code = 401
    default_message = "Invalid username or password"


class UnauthorizedError(TaskManagerError):
    status_code = 401
    default_message = "Unauthorized"


class TaskNotFoundError(TaskManagerError):
    # Also raised for tasks owned by someone else.
    status_code = 404
    default_message = ""
