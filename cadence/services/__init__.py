"""Business services: auth orchestration, reset tokens, audit, mail."""
