"""Business logic: the account store."""
