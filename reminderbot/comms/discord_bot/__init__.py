"""Discord gateway: slash commands, buttons and the outbound chat client."""
