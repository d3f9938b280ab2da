"""
Ticketflow API

Keeps support tickets in step with the external helpdesk and drives them
through the machine translation, reply and human audit pipeline.
"""

__version__ = "0.1.0"
