"""Custom exception hierarchy for better error handling."""
from fastapi import HTTPException, status


class StudyBuddyException(Exception):
    """Base exception for all application errors."""
    pass


class QuizNotFoundException(StudyBuddyException):
    """Raised when a quiz id is unknown to the user's study state."""

    def __init__(self, quiz_id: str):
        self.quiz_id = quiz_id
        super().__init__(f"Quiz {quiz_id} not found")

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Quiz {self.quiz_id} not found"
        )


class WorkflowRunNotFoundException(StudyBuddyException):
    """Raised when a workflow run id is unknown."""

    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__(f"Workflow run {run_id} not found")

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Workflow run {self.run_id} not found"
        )


class InvalidStateTransition(StudyBuddyException):
    """Raised when an invalid workflow run state transition is attempted."""

    def __init__(self, message: str):
        super().__init__(message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(self)
        )


class LLMProviderException(StudyBuddyException):
    """Raised when LLM provider fails and no fallback exists."""

    def __init__(self, original_error: Exception):
        self.original_error = original_error
        super().__init__(f"LLM provider error: {str(original_error)}")

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="AI service temporarily unavailable"
        )


class DatabaseException(StudyBuddyException):
    """Raised when database operations fail."""

    def __init__(self, operation: str, original_error: Exception):
        self.operation = operation
        self.original_error = original_error
        super().__init__(f"Database {operation} failed: {str(original_error)}")

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database operation failed"
        )


class PromptTemplateError(StudyBuddyException):
    """Raised when a prompt template is rendered without all its variables."""

    def __init__(self, template_name: str, missing_vars: list):
        self.template_name = template_name
        self.missing_vars = missing_vars
        super().__init__(f"Template '{template_name}' missing variables: {', '.join(missing_vars)}")
