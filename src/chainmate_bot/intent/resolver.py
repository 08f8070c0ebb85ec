from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Literal

from chainmate_bot.intent.ports import ContactLookup
from chainmate_bot.intent.types import RECIPIENT_REQUIRED_INTENTS, TransactionIntent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MissingField:
    kind: Literal["recipient", "contact_not_found", "amount", "contact_name", "team", "swap"]
    prompt: str


def resolve(intent: TransactionIntent, contacts: ContactLookup) -> TransactionIntent:
    if intent.recipient:
        return intent
    if not intent.contact_name:
        return intent
    # a contact intent names the new contact, it does not refer to a saved one
    if intent.type == "contact":
        return intent

    address = contacts.lookup(intent.contact_name)
    if not address:
        logger.info("contact not found: %r", intent.contact_name)
        return intent

    return replace(intent, recipient=address)


def missing_field(intent: TransactionIntent) -> MissingField | None:
    """What still blocks a proposal after resolution, if anything."""
    if intent.type in RECIPIENT_REQUIRED_INTENTS and intent.type != "contact":
        if not intent.recipient:
            if intent.contact_name:
                return MissingField(
                    kind="contact_not_found",
                    prompt=(
                        f"I couldn't find a contact named '{intent.contact_name}'. "
                        "Send the wallet address (0x...) or add them first with "
                        "\"add contact <name> <address>\"."
                    ),
                )
            return MissingField(
                kind="recipient",
                prompt="Who should receive it? Send a wallet address (0x...) or a saved contact name.",
            )

    if intent.type in ("send", "schedule", "conditional") and not intent.amount:
        return MissingField(kind="amount", prompt="How much should I send?")

    if intent.type == "contact":
        if not intent.contact_name:
            return MissingField(
                kind="contact_name",
                prompt="What name should I save this contact under? Try: \"add contact Alice 0x...\"",
            )
        if not intent.recipient:
            return MissingField(
                kind="recipient",
                prompt=f"What is the wallet address (0x...) for '{intent.contact_name}'?",
            )

    if intent.type == "team":
        if not intent.team_members:
            return MissingField(
                kind="team",
                prompt="Which addresses should be in the team? List the member addresses (0x...).",
            )
        if not intent.team_name:
            return MissingField(
                kind="team",
                prompt="What should the team be called? Try: \"create team Ops 0x... 0x...\"",
            )

    if intent.type == "swap":
        if not intent.from_token or not intent.to_token:
            return MissingField(
                kind="swap",
                prompt="Which tokens should I swap? Try: \"swap 1 BNB to USDT\".",
            )
        if not intent.amount:
            return MissingField(
                kind="swap",
                prompt=f"How much {intent.from_token} should I swap to {intent.to_token}?",
            )

    return None
