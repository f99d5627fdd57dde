from casepay.routes.cases import router as cases_router
from casepay.routes.payment import router as payment_router
from casepay.routes.admin import router as admin_router

__all__ = ["cases_router", "payment_router", "admin_router"]
