from .token import Token, TokenData
from .user import User
from .agency import (
    AgencyBase,
    AgencyCreate,
    AgencyUpdate,
    AgencyInDBBase,
    Agency,
    AgencyTreeNode,
    AgencyCreated,
    AgencyDetail
)
from .client import (
    ClientBase,
    ClientCreate,
    ClientUpdate,
    ClientStatusUpdate,
    Client
)
from .commission import (
    CommissionPay,
    Commission as CommissionSchema, # Alias to avoid clash if Commission model is also imported directly
    ClientStatusChange
)
