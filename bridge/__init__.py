"""Bridge inbound WhatsApp conversations into Trello tickets."""
