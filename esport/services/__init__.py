"""
esport/services
Domain services, each constructed per request with an AsyncSession
"""
from esport.services.ranking_calculator import RankingCalculator
from esport.services.result_store import ResultStore, ResultSubmission
from esport.services.registration_gateway import RegistrationGateway
from esport.services.payment_service import PaymentService, PaymentCreate
from esport.services.competition_service import CompetitionService
from esport.services.user_service import UserService
from esport.services.newsletter_service import NewsletterService
from esport.services.mailer import Mailer, MailError
from esport.services.cms_sync import CmsSyncClient, SyncError
from esport.services.activity_logger import log_activity

__all__ = [
    "RankingCalculator",
    "ResultStore", "ResultSubmission",
    "RegistrationGateway",
    "PaymentService", "PaymentCreate",
    "CompetitionService",
    "UserService",
    "NewsletterService",
    "Mailer", "MailError",
    "CmsSyncClient", "SyncError",
    "log_activity",
]
