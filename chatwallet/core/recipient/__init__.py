from .resolver import RecipientForm, RecipientResolver, ResolvedRecipient, classify_recipient

__all__ = ["RecipientForm", "RecipientResolver", "ResolvedRecipient", "classify_recipient"]
