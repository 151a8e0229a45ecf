"""
esport/orm
Importing this package registers every model on Base.metadata
"""
from esport.orm.base import Base, BaseModel
from esport.orm.user import User, UserProfile, UserRole
from esport.orm.competition import (
    Competition, CompetitionStatus, CompetitionRegistration, RegistrationStatus
)
from esport.orm.result import Result, ResultStatus
from esport.orm.ranking import RankingEntry
from esport.orm.payment import Payment, PaymentStatus
from esport.orm.newsletter import (
    NewsletterSubscriber, NewsletterPreference, Newsletter, NewsletterLog, DeliveryStatus
)
from esport.orm.activity_log import ActivityLog, ActivityAction

__all__ = [
    "Base", "BaseModel",
    "User", "UserProfile", "UserRole",
    "Competition", "CompetitionStatus", "CompetitionRegistration", "RegistrationStatus",
    "Result", "ResultStatus",
    "RankingEntry",
    "Payment", "PaymentStatus",
    "NewsletterSubscriber", "NewsletterPreference", "Newsletter", "NewsletterLog", "DeliveryStatus",
    "ActivityLog", "ActivityAction",
]
