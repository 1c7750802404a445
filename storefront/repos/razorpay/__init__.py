from .gateway import RazorpayPaymentGateway

__all__ = ["RazorpayPaymentGateway"]
