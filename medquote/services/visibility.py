"""
Which RFQs a vendor may see, be notified about, and quote on.

  registered_hospitals_only  registered RFQs from hospital buyers only
  registered_all             every registered RFQ, including broker RFQs
  all_including_guests       everything, guest RFQs too

A broker never sees its own RFQ. An RFQ waiting on, or refused by, its
approval chain is hidden from every vendor.
"""

import uuid
from typing import Optional

from medquote.models.rfq import Rfq
from medquote.models.user import User

DEFAULT_PREFERENCE = "all_including_guests"
HELD_APPROVAL_STATUSES = ("pending_approval", "rejected")


def vendor_preference(vendor: User) -> str:
    return vendor.quotation_preference or DEFAULT_PREFERENCE


def accepts_rfq(
    preference: str,
    is_guest: bool,
    is_broker: bool = False,
) -> bool:
    if is_guest:
        return preference == "all_including_guests"
    if is_broker and preference == "registered_hospitals_only":
        return False
    return True


def is_held_for_approval(rfq: Rfq) -> bool:
    return rfq.approval_status in HELD_APPROVAL_STATUSES


def is_rfq_visible_to_vendor(rfq: Rfq, vendor: User) -> bool:
    if is_held_for_approval(rfq):
        return False
    if rfq.is_broker and rfq.buyer_id == vendor.id:
        return False
    return accepts_rfq(vendor_preference(vendor), rfq.is_guest, rfq.is_broker)


def should_notify_vendor(
    vendor: User,
    is_guest: bool,
    is_broker: bool = False,
    submitter_id: Optional[uuid.UUID] = None,
) -> bool:
    """Same policy as is_rfq_visible_to_vendor, for RFQs still being built."""
    if submitter_id is not None and vendor.id == submitter_id:
        return False
    return accepts_rfq(vendor_preference(vendor), is_guest, is_broker)
