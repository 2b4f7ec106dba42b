"""
Custom Exceptions for Prokip Bridge Services
============================================

All exceptions raised by the business logic layer.
"""

class BridgeException(Exception):
    """Base exception for all bridge errors"""
    def __init__(self, message, error_code=None, details=None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self):
        return {
            'error': True,
            'message': self.message,
            'error_code': self.error_code,
            'details': self.details
        }

class ValidationError(BridgeException):
    """Error for validation failures"""
    def __init__(self, message, field=None, details=None):
        super().__init__(message, 'VALIDATION_ERROR', details)
        self.field = field

class BusinessRuleError(BridgeException):
    """Error for business rule violations"""
    def __init__(self, message, rule_code=None, details=None):
        super().__init__(message, 'BUSINESS_RULE_ERROR', details)
        self.rule_code = rule_code

class ConfigurationError(BusinessRuleError):
    """Raised when a user has no usable Prokip config or store connection"""
    def __init__(self, message, details=None):
        super().__init__(message, 'CONFIGURATION_ERROR', details)

class UnsupportedPlatformError(BusinessRuleError):
    """Raised when a connection's platform has no store client"""
    def __init__(self, platform, details=None):
        super().__init__(f"Platform '{platform}' is not supported", 'UNSUPPORTED_PLATFORM', details)
        self.platform = platform

class AuthenticationError(BridgeException):
    """Error for authentication failures"""
    def __init__(self, message="Authentication failed", details=None):
        super().__init__(message, 'AUTHENTICATION_ERROR', details)

class NotFoundError(BridgeException):
    """Error when a resource cannot be found"""
    def __init__(self, resource_type, resource_id, details=None):
        message = f"{resource_type} with ID {resource_id} not found"
        super().__init__(message, 'NOT_FOUND', details)
        self.resource_type = resource_type
        self.resource_id = resource_id

class ConflictError(BridgeException):
    """Error for resource conflicts"""
    def __init__(self, message, resource_type=None, details=None):
        super().__init__(message, 'CONFLICT_ERROR', details)
        self.resource_type = resource_type

class ExternalServiceError(BridgeException):
    """Error for external service failures"""
    def __init__(self, service_name, message, status_code=None, response_body=None, details=None):
        super().__init__(f"{service_name}: {message}", 'EXTERNAL_SERVICE_ERROR', details)
        self.service_name = service_name
        self.status_code = status_code
        self.response_body = response_body

class WooCommerceAPIError(ExternalServiceError):
    """WooCommerce REST API failure"""
    def __init__(self, message, status_code=None, response_body=None, details=None):
        super().__init__('WooCommerce', message, status_code, response_body, details)

class ProkipAPIError(ExternalServiceError):
    """Prokip connector API failure"""
    def __init__(self, message, status_code=None, response_body=None, details=None):
        super().__init__('Prokip', message, status_code, response_body, details)

class CredentialError(BridgeException):
    """Stored credentials could not be decrypted"""
    def __init__(self, message="Failed to decrypt stored credentials", details=None):
        super().__init__(message, 'CREDENTIAL_ERROR', details)
