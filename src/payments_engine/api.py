from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from . import __version__
from .auth import limiter
from .lifecycle.api import router as lifecycle_router
from .reconciliation.api import router as reconciliation_router

app = FastAPI(title="Payments Engine - Lifecycle & Reconciliation API", version=__version__)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(lifecycle_router)
app.include_router(reconciliation_router)


@app.get("/health")
async def health():
    return {"status": "healthy", "version": __version__}
