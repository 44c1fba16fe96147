from __future__ import annotations

import logging
import time
from collections.abc import Callable

from sqlalchemy.orm import Session

from jobflow.config import Settings, get_settings
from jobflow.core.mailer import EmailMessage, EmailTransport, extract_sender, render_template, to_html
from jobflow.db.base import utcnow
from jobflow.db.models import Contact, EmailCampaign
from jobflow.db.repositories import Repository
from jobflow.errors import InvalidStateError, NotFoundError, TransportFailure
from jobflow.types import CampaignSendResult

logger = logging.getLogger(__name__)


def build_message(campaign: EmailCampaign, contact: Contact, sender: str) -> EmailMessage:
    text = render_template(campaign.template, name=contact.name, company=contact.company)
    return EmailMessage(
        to=contact.email,
        sender=sender,
        subject=campaign.subject,
        text=text,
        html=to_html(text),
    )


class CampaignDispatcher:
    """Sends one campaign to every resolvable contact, one message at a time.

    Individual delivery failures are counted, never raised; the campaign is
    marked "sent" with ``sent_count`` equal to the successful deliveries.
    """

    def __init__(
        self,
        session: Session,
        transport: EmailTransport,
        *,
        settings: Settings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings or get_settings()
        self.repo = Repository(session)
        self.transport = transport
        self.sleep = sleep

    @property
    def delay_sec(self) -> float:
        return self.settings.campaign_send_delay_ms / 1000

    def resolve_sender(self, user_id: str) -> str:
        user_settings = self.repo.get_user_settings(user_id)
        signature = user_settings.email_signature if user_settings else None
        return extract_sender(signature, self.settings.default_sender_email)

    def send(self, campaign_id: int, *, user_id: str | None = None) -> CampaignSendResult:
        campaign = self.repo.get_email_campaign(campaign_id)
        if campaign is None:
            raise NotFoundError("email campaign", campaign_id)

        owner_id = user_id or campaign.user_id
        contacts = self.repo.get_contacts_by_ids(campaign.user_id, campaign.contact_ids or [])
        if not contacts:
            raise InvalidStateError("No valid contacts found for this campaign")

        listed = campaign.contact_ids or []
        duplicates = len(listed) - len(set(listed))
        if duplicates:
            logger.info("Campaign %s skipping %s duplicate contact ids", campaign_id, duplicates)
        stale = len(set(listed)) - len(contacts)
        if stale:
            logger.info("Campaign %s skipping %s unresolvable contact ids", campaign_id, stale)

        if not self.transport.is_configured:
            logger.warning("Mail transport not configured; campaign %s will record every send as failed", campaign_id)

        sender = self.resolve_sender(owner_id)
        self.repo.update_email_campaign(campaign_id, {"status": "sending"})

        sent = 0
        failed = 0
        try:
            for index, contact in enumerate(contacts):
                if index:
                    self.sleep(self.delay_sec)

                message = build_message(campaign, contact, sender)
                try:
                    delivered = self.transport.send(message)
                except TransportFailure as exc:
                    logger.warning("Campaign %s delivery to %s failed: %s", campaign_id, contact.email, exc)
                    delivered = False

                if delivered:
                    sent += 1
                    self.repo.update_contact(contact.id, {"last_contacted": utcnow()})
                else:
                    failed += 1
        except Exception:
            logger.exception("Campaign %s aborted after sent=%s failed=%s", campaign_id, sent, failed)
            # A campaign never stays in "sending" once the loop has stopped.
            self.repo.session.rollback()
            self.repo.update_email_campaign(
                campaign_id,
                {"status": "sent", "sent_count": sent, "response_count": 0},
            )
            raise

        self.repo.update_email_campaign(
            campaign_id,
            {"status": "sent", "sent_count": sent, "response_count": 0},
        )
        logger.info("Campaign %s finished sent=%s failed=%s", campaign_id, sent, failed)
        return CampaignSendResult(sent=sent, failed=failed, total=len(contacts))
