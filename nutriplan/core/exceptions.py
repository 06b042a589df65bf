from fastapi import HTTPException, status

class AuthenticationError(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

class MissingAuthorizationError(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

class UserMismatchError(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User ID mismatch"
        )

class InvalidPlanError(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid plan"
        )

class MissingPaymentDataError(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required payment data (token, email, payment_method_id, issuer_id)"
        )

class SubscriptionNotFoundError(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Subscription not found"
        )

class InvalidSignatureError(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid signature"
        )

class AIConfigurationError(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="AI service is not configured on the server"
        )

class AIResponseError(HTTPException):
    def __init__(self, detail: str = "The AI service did not return a valid response"):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=detail
        )


class PaymentProviderError(Exception):
    """Raised when Mercado Pago answers with an error status."""

    def __init__(self, status_code: int, response):
        self.status_code = status_code
        self.response = response
        self.message = response.get("message") if isinstance(response, dict) else response
        super().__init__(f"Mercado Pago error {status_code}: {self.message}")
