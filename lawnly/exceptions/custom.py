class LawnlyError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class AuthenticationError(LawnlyError):
    pass


class AuthorizationError(LawnlyError):
    pass


class ValidationError(LawnlyError):
    pass


class NotFoundError(LawnlyError):
    pass


class ConflictError(LawnlyError):
    pass


class ExternalServiceError(LawnlyError):
    service = "external service"

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class SupabaseError(ExternalServiceError):
    service = "Supabase"


class StripeError(ExternalServiceError):
    service = "Stripe"


class ResendError(ExternalServiceError):
    service = "Resend"


class RateLimitError(Exception):
    def __init__(self, service: str):
        self.service = service
        super().__init__(f"Rate limit exceeded for {service}")
