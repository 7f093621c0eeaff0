from settleup.models.user import User
from settleup.models.group import Group, GroupMember, GroupRole
from settleup.models.expense import Expense, ExpenseShare
from settleup.models.settlement import Settlement, Payment, SettlementStatus, PaymentStatus, PaymentMethod

__all__ = [
    "User", "Group", "GroupMember", "GroupRole",
    "Expense", "ExpenseShare",
    "Settlement", "Payment", "SettlementStatus", "PaymentStatus", "PaymentMethod",
]
