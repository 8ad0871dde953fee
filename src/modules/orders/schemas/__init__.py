from .order_schemas import OrderResponse, SignatureResponse, SignRequest, SignResponse

__all__ = ['OrderResponse', 'SignatureResponse', 'SignRequest', 'SignResponse']
