"""whatsched: recurring WhatsApp message scheduler."""
