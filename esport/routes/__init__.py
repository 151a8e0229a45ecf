"""
esport/routes/__init__.py
Route registration, mounted under /api by esport.main
"""
from fastapi import APIRouter

from esport.errors import ErrorResponse
from esport.routes import users, competitions, results, rankings, payments, newsletter

# Documented on every route; the handlers in esport.main produce this body
ERROR_RESPONSES = {code: {"model": ErrorResponse} for code in (400, 401, 403, 404, 409, 500)}

router = APIRouter(responses=ERROR_RESPONSES)

router.include_router(users.router)
router.include_router(competitions.router)
router.include_router(results.router)
router.include_router(rankings.router)
router.include_router(payments.router)
router.include_router(newsletter.router)
