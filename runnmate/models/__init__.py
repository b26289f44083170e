from runnmate.models.launch import LaunchNotification
from runnmate.models.listing import Listing, Offer, OfferCreate, OfferStatus
from runnmate.models.verification import StravaVerification, StravaVerificationRead

__all__ = [
    "LaunchNotification",
    "Listing",
    "Offer",
    "OfferCreate",
    "OfferStatus",
    "StravaVerification",
    "StravaVerificationRead",
]
