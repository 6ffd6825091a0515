"""Central model registry. Import all models so Alembic autodiscover works."""

from medquote.database import Base  # noqa: F401

from medquote.models.user import User  # noqa: F401
from medquote.models.catalog import Category, Product  # noqa: F401
from medquote.models.vendor_quotation import VendorQuotation  # noqa: F401
from medquote.models.rfq import Rfq, RfqItem, SentQuotation  # noqa: F401
from medquote.models.approval import ApprovalRequest  # noqa: F401
from medquote.models.order import Order  # noqa: F401
from medquote.models.rating import Rating  # noqa: F401
from medquote.models.notification import Notification  # noqa: F401
from medquote.models.analytics_event import AnalyticsEvent  # noqa: F401
from medquote.models.group_buy import GroupBuy, GroupBuyParticipant  # noqa: F401
