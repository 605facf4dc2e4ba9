from splitledger.models.user import User
from splitledger.models.group import Group
from splitledger.models.group_member import GroupMember
from splitledger.models.balance import Balance, GroupBalance
from splitledger.models.expense import Expense, ExpenseParticipant, ExpenseAudit
from splitledger.models.import_link import ImportLink
