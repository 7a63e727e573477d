"""Custom exceptions for the CRM application."""


class CrmError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="Ocorreu um erro interno", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv


class BusinessLogicError(CrmError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class NotFoundError(CrmError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Registro não encontrado", payload=None):
        super().__init__(message, 404, payload)


class InvalidTransitionError(BusinessLogicError):
    """Raised when a sale cannot move between two statuses."""
    def __init__(self, from_status, to_status):
        message = f"Transição de status não permitida: {from_status} -> {to_status}"
        super().__init__(message, status_code=409, payload={
            'from_status': from_status,
            'to_status': to_status,
        })


class InsufficientStockError(BusinessLogicError):
    """Raised when an operation fails due to lack of stock."""
    def __init__(self, product_name, required, available):
        message = f"Estoque insuficiente para {product_name}: necessário {required}, disponível {available}"
        super().__init__(message, status_code=409)


class AuthorizationRequiredError(CrmError):
    """Raised when a price below the kit minimum has no manager authorization."""
    def __init__(self, message="Preço abaixo do mínimo requer autorização do gerente", payload=None):
        super().__init__(message, 403, payload)


class UnauthorizedError(CrmError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Acesso não autorizado"):
        super().__init__(message, 403)
