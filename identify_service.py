"""Identity reconciliation over the Contact table.

``IdentifyService.identify`` locates every contact sharing the request's
email or phone, elects the oldest primary, demotes the rest beneath it,
records any new email/phone as a secondary and returns the consolidated
view. All of it happens inside one transaction.
"""
from datetime import datetime, timezone
from typing import List, Optional

from app_logging import get_logger
from contact_repository import ContactRepository
from db_models import Contact, ContactResponse, LinkPrecedence
from errors import MissingIdentifierError

logger = get_logger("identify.service")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def locate_cluster(repo, email: Optional[str], phone: Optional[str]) -> List[Contact]:
    """Every stored contact whose email or phone equals the request's."""
    return repo.find_by_email_or_phone(email, phone)


def elect_primary(contacts: List[Contact]) -> Contact:
    """Oldest primary wins, lowest id breaks ties.

    Falls back to the whole set when none of the matches is a primary.
    """
    candidates = [c for c in contacts if c.is_primary] or contacts
    return min(candidates, key=lambda c: (c.createdAt, c.id))


def resolve_conflicts(repo, contacts: List[Contact], primary: Contact, now: datetime) -> List[Contact]:
    """Point every non-primary match at ``primary``, writing only rows that change.

    Only the rows handed in are re-parented. Secondaries of a losing cluster
    that were not matched directly keep their old ``linkedId``.
    """
    cluster = []
    for contact in contacts:
        if contact.id == primary.id:
            cluster.append(contact)
            continue

        changes = {}
        if contact.linkPrecedence != LinkPrecedence.SECONDARY:
            changes["linkPrecedence"] = LinkPrecedence.SECONDARY
        if contact.linkedId != primary.id:
            changes["linkedId"] = primary.id

        if changes:
            changes["updatedAt"] = now
            contact = contact.model_copy(update=changes)
            repo.update(contact)
            logger.info(
                "contact_demoted",
                contact_id=contact.id,
                primary_id=primary.id,
                changed=sorted(changes),
            )
        cluster.append(contact)
    return cluster


def has_new_information(cluster: List[Contact], email: Optional[str], phone: Optional[str]) -> bool:
    known_emails = {c.email for c in cluster if c.email is not None}
    known_phones = {c.phoneNumber for c in cluster if c.phoneNumber is not None}

    if email is not None and email not in known_emails:
        return True
    if phone is not None and phone not in known_phones:
        return True
    return False


def create_contact(repo, email, phone, now, primary: Optional[Contact] = None) -> Contact:
    """Insert a primary, or a secondary linked to ``primary`` when one is given."""
    contact = repo.create(Contact(
        email=email,
        phoneNumber=phone,
        linkedId=primary.id if primary else None,
        linkPrecedence=LinkPrecedence.SECONDARY if primary else LinkPrecedence.PRIMARY,
        createdAt=now,
        updatedAt=now,
    ))
    logger.info(
        "contact_created",
        contact_id=contact.id,
        link_precedence=contact.linkPrecedence.value,
        linked_id=contact.linkedId,
    )
    return contact


def _unique(values, exclude=None):
    seen = []
    for value in values:
        if value is None or value == exclude or value in seen:
            continue
        seen.append(value)
    return seen


def assemble_response(primary: Contact, cluster: List[Contact]) -> ContactResponse:
    emails = [primary.email] if primary.email is not None else []
    phone_numbers = [primary.phoneNumber] if primary.phoneNumber is not None else []

    emails += _unique((c.email for c in cluster), exclude=primary.email)
    phone_numbers += _unique((c.phoneNumber for c in cluster), exclude=primary.phoneNumber)

    return ContactResponse(
        primaryContactId=primary.id,
        emails=emails,
        phoneNumbers=phone_numbers,
        secondaryContactIds=[c.id for c in cluster if c.id != primary.id],
    )


class IdentifyService:
    def __init__(self, repository: ContactRepository):
        self.repository = repository

    def identify(self, email: Optional[str] = None, phone: Optional[str] = None) -> ContactResponse:
        if email is None and phone is None:
            raise MissingIdentifierError()

        now = _utcnow()
        with self.repository.transaction() as repo:
            existing = locate_cluster(repo, email, phone)

            if not existing:
                contact = create_contact(repo, email, phone, now)
                response = assemble_response(contact, [contact])
            else:
                primary = elect_primary(existing)
                cluster = resolve_conflicts(repo, existing, primary, now)
                if has_new_information(cluster, email, phone):
                    cluster.append(create_contact(repo, email, phone, now, primary=primary))
                response = assemble_response(primary, cluster)

        logger.info(
            "identify_completed",
            primary_id=response.primaryContactId,
            matched=len(existing),
            secondary_count=len(response.secondaryContactIds),
        )
        return response
