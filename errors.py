"""Error taxonomy shared by the bridges, the pipeline and the Flask routes."""


class StoryError(Exception):
    """Base class for every error raised by the story service."""


class ValidationError(StoryError):
    """A required request field is missing or blank. Never retried."""

    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(message or f"{field} required")


class ProviderError(StoryError):
    """Non-success HTTP status (or network failure, status 0) from a provider."""

    def __init__(self, status: int, body: str = "", provider: str = ""):
        self.status = status
        self.body = body
        self.provider = provider
        super().__init__(f"{provider or 'provider'} HTTP {status}: {body[:300]}")

    def to_dict(self) -> dict:
        return {"provider": self.provider, "status": self.status, "body": self.body[:1000]}


class ProviderTimeoutError(ProviderError):
    """An asynchronous job did not finish within the allowed number of polls."""

    def __init__(self, provider: str, polls: int):
        self.polls = polls
        super().__init__(0, f"job not finished after {polls} polls", provider)


class MalformedResponseError(StoryError):
    """Provider answered 200 but the payload lacks the expected field."""

    def __init__(self, provider: str, detail: str):
        self.provider = provider
        self.detail = detail
        super().__init__(f"{provider}: malformed response — {detail}")

    def to_dict(self) -> dict:
        return {"provider": self.provider, "detail": self.detail}


class GenerationError(StoryError):
    """A pipeline stage exhausted its retries; the whole story is abandoned."""

    def __init__(self, stage: str, cause: Exception):
        self.stage = stage
        self.cause = cause
        super().__init__(f"stage {stage} failed: {cause}")

    def to_dict(self) -> dict:
        details: dict = {"stage": self.stage, "error": str(self.cause)}
        if isinstance(self.cause, (ProviderError, MalformedResponseError)):
            details.update(self.cause.to_dict())
        return details
