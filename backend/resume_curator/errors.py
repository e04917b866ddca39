"""
Error taxonomy for the resume curator.

Every error carries a short ``message`` plus optional ``details`` and an
actionable ``suggestion`` so the HTTP layer can render guidance without
string-matching on provider error text.
"""
from typing import Optional


class CuratorError(Exception):
    """Base class for all curator failures"""

    status_code = 500
    title = "Request failed"

    def __init__(self, message: str, details: Optional[str] = None, suggestion: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        self.suggestion = suggestion

    def to_dict(self) -> dict:
        body = {"error": self.title, "details": self.details or self.message}
        if self.suggestion:
            body["suggestion"] = self.suggestion
        return body


class CredentialMissing(CuratorError):
    """No API key configured for the selected provider"""

    status_code = 401
    title = "API Key Required"

    def __init__(self, provider: str, env_var: str, console_url: str):
        super().__init__(
            f"AI client not initialized. Please set {env_var}.",
            details=f"Please set {env_var} in your environment.",
            suggestion=f"Get your API key from {console_url} and add it as {env_var}.",
        )
        self.provider = provider
        self.env_var = env_var


class CredentialInvalid(CuratorError):
    status_code = 401
    title = "Invalid API Key"

    def __init__(self, provider: str, env_var: str, details: Optional[str] = None):
        super().__init__(
            f"Invalid API key. Please check your {env_var}.",
            details=details,
            suggestion=f"Replace {env_var} with a valid {provider} key and restart the server.",
        )
        self.provider = provider
        self.env_var = env_var


class QuotaExceeded(CuratorError):
    status_code = 429
    title = "API Quota Exceeded"

    def __init__(self, provider: str, details: Optional[str] = None):
        super().__init__(
            f"{provider} quota exceeded, please check your plan and billing details.",
            details=details,
            suggestion="Add billing information to your provider account, switch provider, or wait for the quota to reset.",
        )
        self.provider = provider


class ProviderError(CuratorError):
    status_code = 502
    title = "AI provider error"

    def __init__(self, message: str, status: Optional[int] = None, details: Optional[str] = None):
        super().__init__(message, details=details, suggestion="Please try again.")
        self.status = status


class InvalidModelOutput(CuratorError):
    status_code = 502
    title = "Failed to parse AI response"

    def __init__(self, details: str):
        super().__init__(
            f"Invalid JSON response from AI: {details}",
            details=details,
            suggestion="The AI returned an invalid response. Please try again.",
        )


class UnsupportedInputFormat(CuratorError):
    status_code = 400
    title = "Unsupported file type"

    def __init__(self, filename: str):
        super().__init__(
            "Unsupported file type. Please upload a PDF or DOCX file.",
            details=f"Could not handle '{filename}'.",
            suggestion="Convert your resume to PDF or DOCX and try again.",
        )


class ExtractionFailed(CuratorError):
    status_code = 400
    title = "Could not extract text from the file"

    def __init__(self, filename: str, details: Optional[str] = None):
        super().__init__(
            f"Failed to extract text from '{filename}'",
            details=details,
            suggestion="Please convert your resume to DOCX format and try again.",
        )


class JobFetchError(CuratorError):
    status_code = 502
    title = "Failed to fetch job description"

    def __init__(self, url: str, details: Optional[str] = None):
        super().__init__(
            f"Failed to fetch job description from {url}",
            details=details,
            suggestion="Check the URL, or paste the job description text instead.",
        )


class ConversationError(CuratorError):
    """Operation not allowed in the conversation's current phase"""

    status_code = 409
    title = "Invalid conversation step"
