"""Texts sent to senders and to the operator channel."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BridgeMessages:
    unsupported_type: str = "Sorry, this message type is not supported :("
    attachment_failed: str = "The attachment of your message could not be downloaded :("
    ticket_failed: str = (
        "Your request could not be forwarded :( Please try again later."
    )
    ticket_created: str = (
        "Your request was forwarded successfully. We will take care of it as soon as possible."
    )
    comment_failed: str = (
        "Your message could not be forwarded :( Please try again later."
    )
    comment_added: str = "Your message was added to your request."
    comment_prefix: str = "**[USER]** "
    new_attachment_marker: str = "\n\n*(New attachment)*"
    operator_ticket_failed: str = "*Failed to create a ticket*\n\n{contact_url}"
    operator_ticket_created: str = "New ticket from @{number}\n\n{url}"
    operator_comment_failed: str = "*Failed to forward a message*\n\n{contact_url}"
    operator_comment_added: str = "New message from @{number}\n\n{url}"


GERMAN = BridgeMessages(
    unsupported_type="Dieser Nachrichtentyp wird leider nicht unterstützt :(",
    attachment_failed="Der Anhang deiner Nachricht konnte nicht heruntergeladen werden :(",
    ticket_failed=(
        "Deine Anfrage konnte nicht weitergeleitet werden :( "
        "Bitte versuche es später nochmal erneut."
    ),
    ticket_created=(
        "Deine Anfrage wurde erfolgreich weitergeleitet. "
        "Wir kümmern uns so schnell wie möglich darum."
    ),
    comment_failed=(
        "Deine Nachricht konnte nicht weitergeleitet werden :( "
        "Bitte versuche es später nochmal erneut."
    ),
    comment_added="Deine Nachricht wurde deiner Anfrage hinzugefügt.",
    new_attachment_marker="\n\n*(Neuer Anhang)*",
    operator_ticket_failed="*Fehler beim Erstellen eines Tickets :(*\n\n{contact_url}",
    operator_ticket_created="Neues Ticket von @{number}\n\n{url}",
    operator_comment_failed="*Fehler beim Weiterleiten einer Nachricht*\n\n{contact_url}",
    operator_comment_added="Neue Nachricht von @{number}\n\n{url}",
)

_LANGUAGES = {"en": BridgeMessages(), "de": GERMAN}


def messages_for(language: str) -> BridgeMessages:
    """Return the message set for ``language``, falling back to English."""

    return _LANGUAGES.get(language.lower(), _LANGUAGES["en"])


def contact_url(number: str) -> str:
    return f"https://wa.me/{number}"
