from contextvars import ContextVar

# Set by RequestIDMiddleware for the lifetime of one HTTP request.
current_request_id: ContextVar[str] = ContextVar("current_request_id", default="-")
