"""
Chat Module
===========

Bounded Context for ticket conversations: messages, images, read
receipts, reactions and typing indicators.
"""
