# Re-export all models for convenient imports
from tla_portal.models.account import Account, DeletedAccount, MembershipType
from tla_portal.models.membership import MembershipSequence

__all__ = [
    # Accounts
    "Account",
    "DeletedAccount",
    "MembershipType",
    # Membership numbers
    "MembershipSequence",
]
