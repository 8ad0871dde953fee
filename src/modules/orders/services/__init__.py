from .order_service import OrderService
from .order_loader import OrderLoader
from .signature_record_service import SignatureRecordService
from .signing_orchestrator import SigningOrchestrator, SigningGuard, SigningResult

__all__ = [
    'OrderService', 'OrderLoader', 'SignatureRecordService',
    'SigningOrchestrator', 'SigningGuard', 'SigningResult',
]
