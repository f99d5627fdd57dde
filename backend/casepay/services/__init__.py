from casepay.services.access import Actor
from casepay.services.audit_service import AuditService
from casepay.services.case_number_allocator import CaseNumberAllocator
from casepay.services.case_service import CaseService
from casepay.services.signature_verifier import SignatureVerifier
from casepay.services.order_gateway import OrderGateway, build_order_gateway
from casepay.services.notification_service import NotificationDispatcher, TransitionEvent
from casepay.services.payment_state_machine import PaymentStateMachine
from casepay.services.payment_service import PaymentService, CallbackOutcome, CallbackResult
from casepay.services.admin_override import AdminOverride

__all__ = [
    "Actor", "AuditService", "CaseNumberAllocator", "CaseService", "SignatureVerifier",
    "OrderGateway", "build_order_gateway", "NotificationDispatcher", "TransitionEvent",
    "PaymentStateMachine", "PaymentService", "CallbackOutcome", "CallbackResult", "AdminOverride",
]
