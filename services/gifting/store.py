"""
In-memory group store. Demo only; nothing survives a restart.
"""

from __future__ import annotations

from typing import Optional

from gift_checkout.models import Contact, Group, Recipient
from gift_checkout.service import GroupLookup


class InMemoryGroupStore(GroupLookup):
    def __init__(self):
        self._groups: dict[str, Group] = {}
        self._next_id = 1

    def create_group(self, first_name: str, last_name: str, email: str, phone: Optional[str] = None) -> Group:
        group_id = str(self._next_id)
        self._next_id += 1
        lead = Contact(first_name=first_name, last_name=last_name, email=email, phone=phone)
        # the lead is also the first member
        lead_member = lead.model_copy(update={"id": "1", "is_lead": True})
        group = Group(id=group_id, lead=lead, members=[lead_member])
        self._groups[group_id] = group
        return group.model_copy(deep=True)

    def get_group(self, group_id: str) -> Optional[Group]:
        group = self._groups.get(group_id)
        return group.model_copy(deep=True) if group else None

    def add_member(
        self,
        group_id: str,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Optional[Contact]:
        group = self._groups.get(group_id)
        if group is None:
            return None
        member = Contact(
            id=str(len(group.members) + 1),
            first_name=first_name,
            last_name=last_name,
            email=email,
            phone=phone,
        )
        group.members.append(member)
        return member.model_copy()

    def set_recipient(self, group_id: str, recipient: Recipient) -> Optional[Recipient]:
        group = self._groups.get(group_id)
        if group is None:
            return None
        group.recipient = recipient.model_copy()
        return group.recipient.model_copy()
