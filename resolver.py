"""Identity consolidation over the contact store.

A request fingerprint (email and/or phone number) is matched against stored
contacts, the touched groups are merged under their oldest primary, a
secondary row is added when the fingerprint carries something the group has
not seen, and the consolidated view of the group is returned.
"""

import logging
from typing import Iterable, List, Optional, Protocol

from db_models import Contact, ContactResponse, LinkPrecedence

logger = logging.getLogger(__name__)


class ContactStoreProtocol(Protocol):
    def find_by_attributes(self, email: Optional[str] = None, phone_number: Optional[str] = None) -> List[Contact]:
        ...

    def find_by_ids_or_linked_ids(self, ids: Iterable[int]) -> List[Contact]:
        ...

    def create(
        self,
        email: Optional[str],
        phone_number: Optional[str],
        link_precedence: LinkPrecedence,
        linked_id: Optional[int] = None,
    ) -> Contact:
        ...

    def update_link(self, contact_id: int, link_precedence: LinkPrecedence, linked_id: Optional[int]) -> None:
        ...

    def relink_secondaries(self, old_primary_id: int, new_primary_id: int) -> int:
        ...


def _unique(values) -> List[str]:
    # dict keeps first-seen order
    return list(dict.fromkeys(v for v in values if v))


class IdentityResolver:
    def __init__(self, store: ContactStoreProtocol):
        self.store = store

    def identify(self, email: Optional[str] = None, phone_number: Optional[str] = None) -> ContactResponse:
        email = email or None
        phone_number = phone_number or None

        matches = self.store.find_by_attributes(email, phone_number)
        logger.debug("Fingerprint email=%r phone=%r matched %d contacts", email, phone_number, len(matches))

        if not matches:
            contact = self.store.create(email, phone_number, LinkPrecedence.primary)
            logger.info("Created primary contact %s", contact.id)
            return self._build_view(contact, [contact])

        candidate_ids = {c.id for c in matches}
        candidate_ids.update(c.linkedId for c in matches if c.linkedId is not None)
        group = self.store.find_by_ids_or_linked_ids(candidate_ids)

        primary = self._pick_primary(group)
        self._merge_into(primary, group)

        known_emails = {c.email for c in group if c.email}
        known_phones = {c.phoneNumber for c in group if c.phoneNumber}
        if (email and email not in known_emails) or (phone_number and phone_number not in known_phones):
            contact = self.store.create(email, phone_number, LinkPrecedence.secondary, primary.id)
            logger.info("Created secondary contact %s under primary %s", contact.id, primary.id)
            group.append(contact)

        return self._build_view(primary, group)

    @staticmethod
    def _pick_primary(group: List[Contact]) -> Contact:
        primaries = [c for c in group if c.is_primary]
        if not primaries:
            # unreachable while every secondary points at a stored primary
            primaries = group
        return min(primaries, key=lambda c: (c.createdAt, c.id))

    def _merge_into(self, primary: Contact, group: List[Contact]) -> None:
        demoted = set()
        for contact in group:
            if contact.is_primary and contact.id != primary.id:
                self.store.update_link(contact.id, LinkPrecedence.secondary, primary.id)
                moved = self.store.relink_secondaries(contact.id, primary.id)
                logger.info(
                    "Merged primary %s into %s (%d secondaries relinked)", contact.id, primary.id, moved
                )
                demoted.add(contact.id)

        if not demoted:
            return
        for contact in group:
            if contact.id in demoted or contact.linkedId in demoted:
                contact.linkPrecedence = LinkPrecedence.secondary
                contact.linkedId = primary.id

    @staticmethod
    def _build_view(primary: Contact, group: List[Contact]) -> ContactResponse:
        others = [c for c in group if c.id != primary.id]
        return ContactResponse(
            primaryContactId=primary.id,
            emails=_unique([primary.email] + [c.email for c in others]),
            phoneNumbers=_unique([primary.phoneNumber] + [c.phoneNumber for c in others]),
            secondaryContactIds=[
                c.id
                for c in others
                if c.linkPrecedence == LinkPrecedence.secondary and c.linkedId == primary.id
            ],
        )
