from typing import Optional


class OrderError(Exception):
    """Base class for every failure of the order and signing pipeline."""

    status_code = 400

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.__doc__ or self.__class__.__name__)
        self.stage: Optional[str] = None
        self.signature_recorded = False

    @property
    def message(self) -> str:
        return str(self)

    def to_detail(self) -> dict:
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "stage": self.stage,
            "signature_recorded": self.signature_recorded,
        }


# Errores del usuario / datos de entrada

class EmptySignature(OrderError):
    """The signature canvas is empty"""
    status_code = 400


class InvalidUpload(OrderError):
    """The uploaded file is not an acceptable PDF"""
    status_code = 400


class MissingDocument(OrderError):
    """The order has no PDF to sign"""
    status_code = 409


class MalformedDocument(OrderError):
    """The document could not be parsed as a PDF"""
    status_code = 422


class UnsupportedImage(OrderError):
    """The signature image could not be decoded"""
    status_code = 422


# Storage boundary

class KeyConflict(OrderError):
    """An artifact already exists under this key"""
    status_code = 409


class InvalidArtifactKey(OrderError):
    """The artifact key is not a valid relative path"""
    status_code = 400


class ArtifactNotFound(OrderError):
    """The artifact does not exist"""
    status_code = 404


class TransientIOError(OrderError):
    """Storage I/O failed; the operation may be retried"""
    status_code = 503


# Store-level policy

class OrderNotFound(OrderError):
    """Order not found"""
    status_code = 404


class UserNotFound(OrderError):
    """User not found"""
    status_code = 404


class DuplicateSignature(OrderError):
    """This user has already signed the order"""
    status_code = 409


class OrderClosed(OrderError):
    """The order no longer accepts changes"""
    status_code = 409


class PermissionDenied(OrderError):
    """The user's role does not allow this action"""
    status_code = 403


class SignerNotAllowed(PermissionDenied):
    """The user's role cannot sign orders"""


class SigningInProgress(OrderError):
    """Another signature is being applied to this order"""
    status_code = 409
